# SPDX-FileCopyrightText: NVIDIA CORPORATION & AFFILIATES
# Copyright (c) 2026 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from typing import List

from podbridge._core.container_runtime import ContainerRuntime, RuntimeVariant
from podbridge.models.pod import Container, ObjectMeta, Pod

SINGULARITY_OPTIONS_ANNOTATION = "slurm-job.vk.io/singularity-options"


class SingularityRuntime(ContainerRuntime):
    """Image-file based runtime: the resolved image path closes the command line."""

    variant = RuntimeVariant.SINGULARITY

    def build_prefix(self, container: Container, metadata: ObjectMeta) -> List[str]:
        # Without an explicit entrypoint the image runscript is used.
        mode = "exec" if container.command else "run"
        extra_options = metadata.annotations.get(SINGULARITY_OPTIONS_ANNOTATION, "").split()
        return [self.config.singularity_path, mode, *self.config.singularity_default_options, *extra_options]

    def build_trailer(self, container: Container, pod: Pod, mounts: str, image: str) -> List[str]:
        trailer = [mounts] if mounts else []
        trailer.append(image)
        return trailer

    def setup_commands(self, container: Container, pod: Pod, image: str) -> List[str]:
        if self.config.singularity_prefix:
            return [self.config.singularity_prefix]
        return []

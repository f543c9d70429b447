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

import re
from typing import List

from podbridge._core.container_runtime import ContainerRuntime, RuntimeVariant
from podbridge.models.pod import Container, ObjectMeta, Pod

ENROOT_OPTIONS_ANNOTATION = "slurm-job.vk.io/enroot-options"

_READ_ONLY_MARKER = re.compile(r":ro(?=,|\s|$)")


def strip_read_only(mounts: str) -> str:
    """Drop ``:ro`` suffixes from a mount fragment, enroot does not support them."""
    return _READ_ONLY_MARKER.sub("", mounts)


class EnrootRuntime(ContainerRuntime):
    """Named-container runtime: containers are created up front and started by name."""

    variant = RuntimeVariant.ENROOT

    @staticmethod
    def container_name(container: Container, pod: Pod) -> str:
        return f"{container.name}{pod.uid}"

    def build_prefix(self, container: Container, metadata: ObjectMeta) -> List[str]:
        extra_options = metadata.annotations.get(ENROOT_OPTIONS_ANNOTATION, "").split()
        return [self.config.enroot_path, "start", *self.config.enroot_default_options, *extra_options]

    def build_trailer(self, container: Container, pod: Pod, mounts: str, image: str) -> List[str]:
        mounts = strip_read_only(mounts)
        trailer = [mounts] if mounts else []
        trailer.append(self.container_name(container, pod))
        return trailer

    def setup_commands(self, container: Container, pod: Pod, image: str) -> List[str]:
        name = self.container_name(container, pod)
        commands = [self.config.enroot_prefix] if self.config.enroot_prefix else []

        squashfs = image
        if not image.endswith(".sqsh"):
            squashfs = str(self.config.pod_files_path(pod.namespace, pod.uid).absolute() / f"{name}.sqsh")
            commands.append(f"{self.config.enroot_path} import --output {squashfs} {image}")
        commands.append(f"{self.config.enroot_path} create --force --name {name} {squashfs}")
        return commands

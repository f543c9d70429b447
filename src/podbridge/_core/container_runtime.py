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

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, List, final

if TYPE_CHECKING:
    from ..models.pod import Container, ObjectMeta, Pod
    from ..systems.slurm.slurm_config import SlurmSidecarConfig


class RuntimeVariant(str, Enum):
    """Supported container runtimes."""

    SINGULARITY = "singularity"
    ENROOT = "enroot"


@dataclass(frozen=True)
class ContainerCommand:
    """
    Fully assembled invocation of one container.

    Attributes
        container_name (str): Name of the container inside the pod.
        runtime (RuntimeVariant): Runtime used to launch the container.
        runtime_command (List[str]): Runtime prefix, environment, mount and image/name tokens.
        is_init_container (bool): Whether the container must complete before regular containers start.
        container_command (List[str]): Entrypoint declared by the pod.
        container_args (List[str]): Arguments declared by the pod.
        container_image (str): Resolved image reference.
        setup_commands (List[str]): Shell lines the job script runs before this container.
    """

    container_name: str
    runtime: RuntimeVariant
    runtime_command: List[str]
    is_init_container: bool
    container_command: List[str] = field(default_factory=list)
    container_args: List[str] = field(default_factory=list)
    container_image: str = ""
    setup_commands: List[str] = field(default_factory=list)


class ContainerRuntime(ABC):
    """
    Builds the command line that launches a container under one runtime.

    Implementations only look at image, name and metadata fields. Resource limits are handled per job, not per
    container.
    """

    variant: ClassVar[RuntimeVariant]

    def __init__(self, config: SlurmSidecarConfig) -> None:
        self.config = config

    @abstractmethod
    def build_prefix(self, container: Container, metadata: ObjectMeta) -> List[str]:
        """Return the runtime invocation tokens placed before environment and mount fragments."""
        ...

    @abstractmethod
    def build_trailer(self, container: Container, pod: Pod, mounts: str, image: str) -> List[str]:
        """Return the mount fragment and the image or container name closing the command."""
        ...

    def setup_commands(self, container: Container, pod: Pod, image: str) -> List[str]:
        return []

    @final
    def assemble(
        self, container: Container, pod: Pod, is_init: bool, envs: List[str], mounts: str, image: str
    ) -> ContainerCommand:
        """
        Combine prefix, environment tokens and trailer into one container command.

        No I/O happens here, all fragments are prepared by the caller.
        """
        runtime_command = [
            *self.build_prefix(container, pod.metadata),
            *envs,
            *self.build_trailer(container, pod, mounts, image),
        ]
        return ContainerCommand(
            container_name=container.name,
            runtime=self.variant,
            runtime_command=runtime_command,
            is_init_container=is_init,
            container_command=list(container.command),
            container_args=list(container.args),
            container_image=image,
            setup_commands=self.setup_commands(container, pod, image),
        )

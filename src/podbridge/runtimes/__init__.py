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

from typing import TYPE_CHECKING, Dict, Type

from podbridge._core.container_runtime import ContainerRuntime, RuntimeVariant
from podbridge._core.exceptions import UnsupportedRuntimeError

from .enroot import EnrootRuntime, strip_read_only
from .singularity import SingularityRuntime

if TYPE_CHECKING:
    from podbridge.systems.slurm.slurm_config import SlurmSidecarConfig

RUNTIMES: Dict[RuntimeVariant, Type[ContainerRuntime]] = {
    RuntimeVariant.SINGULARITY: SingularityRuntime,
    RuntimeVariant.ENROOT: EnrootRuntime,
}


def create_runtime(name: str, config: SlurmSidecarConfig) -> ContainerRuntime:
    """
    Return the command builder for a runtime variant name.

    Raises:
        UnsupportedRuntimeError: If ``name`` is not a supported runtime.
    """
    supported = [variant.value for variant in RuntimeVariant]
    try:
        variant = RuntimeVariant(name)
    except ValueError as e:
        raise UnsupportedRuntimeError(name, supported) from e
    return RUNTIMES[variant](config)


__all__ = [
    "RUNTIMES",
    "EnrootRuntime",
    "SingularityRuntime",
    "create_runtime",
    "strip_read_only",
]

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

from .core import (
    CollaboratorError,
    ContainerCommand,
    ContainerRuntime,
    EnrootRuntime,
    FormatError,
    JobStore,
    Pod,
    ResourceLimitAggregator,
    ResourceLimits,
    RetrievedPodData,
    RuntimeVariant,
    SingularityRuntime,
    SubmissionFailed,
    SubmissionOutcome,
    SubmissionStage,
    UnsupportedRuntimeError,
    create_runtime,
)
from .systems.slurm import SlurmScheduler, SlurmSidecarConfig, SlurmSubmitHandler, load_config
from .util import parse_mem

__version__ = "0.1.0"

__all__ = [
    "CollaboratorError",
    "ContainerCommand",
    "ContainerRuntime",
    "EnrootRuntime",
    "FormatError",
    "JobStore",
    "Pod",
    "ResourceLimitAggregator",
    "ResourceLimits",
    "RetrievedPodData",
    "RuntimeVariant",
    "SingularityRuntime",
    "SlurmScheduler",
    "SlurmSidecarConfig",
    "SlurmSubmitHandler",
    "SubmissionFailed",
    "SubmissionOutcome",
    "SubmissionStage",
    "UnsupportedRuntimeError",
    "create_runtime",
    "load_config",
    "parse_mem",
]

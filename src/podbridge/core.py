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

"""Core podbridge base classes and interfaces."""

from ._core import (
    DEFAULT_CPU_LIMIT,
    DEFAULT_MEMORY_LIMIT,
    CollaboratorError,
    CompensationError,
    DuplicatePodError,
    ContainerCommand,
    ContainerRuntime,
    FormatError,
    JobIdRetrievalError,
    JobStore,
    JobSubmissionError,
    LimitUpdate,
    PodBridgeError,
    ResourceLimitAggregator,
    ResourceLimits,
    RuntimeVariant,
    SidecarConfigParsingError,
    SubmissionFailed,
    SubmissionOutcome,
    SubmissionStage,
    SubmissionTrace,
    UnsupportedRuntimeError,
    aggregate_limits,
    format_validation_error,
)
from .models.pod import Container, ObjectMeta, Pod, RetrievedPodData, parse_quantity
from .runtimes import EnrootRuntime, SingularityRuntime, create_runtime

__all__ = [
    "DEFAULT_CPU_LIMIT",
    "DEFAULT_MEMORY_LIMIT",
    "CollaboratorError",
    "CompensationError",
    "DuplicatePodError",
    "Container",
    "ContainerCommand",
    "ContainerRuntime",
    "EnrootRuntime",
    "FormatError",
    "JobIdRetrievalError",
    "JobStore",
    "JobSubmissionError",
    "LimitUpdate",
    "ObjectMeta",
    "Pod",
    "PodBridgeError",
    "ResourceLimitAggregator",
    "ResourceLimits",
    "RetrievedPodData",
    "RuntimeVariant",
    "SidecarConfigParsingError",
    "SingularityRuntime",
    "SubmissionFailed",
    "SubmissionOutcome",
    "SubmissionStage",
    "SubmissionTrace",
    "UnsupportedRuntimeError",
    "aggregate_limits",
    "create_runtime",
    "format_validation_error",
    "parse_quantity",
]

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

import math
from dataclasses import dataclass
from typing import Optional

from podbridge.util.utils import parse_mem

DEFAULT_CPU_LIMIT = 1
DEFAULT_MEMORY_LIMIT = parse_mem("1M")


@dataclass
class ResourceLimits:
    """
    Job-wide resource ceiling shared by all containers of one pod.

    Attributes
        cpu (int): Number of CPUs requested for the whole job.
        memory (int): Memory requested for the whole job, in bytes.
        cpu_default (bool): True while no explicit CPU limit raised the ceiling above the default floor.
        memory_default (bool): True while no explicit memory limit raised the ceiling above the default floor.
    """

    cpu: int = 0
    memory: int = 0
    cpu_default: bool = True
    memory_default: bool = True


@dataclass(frozen=True)
class LimitUpdate:
    """Outcome of folding one container into the running ceiling."""

    container_name: str
    cpu_defaulted: bool = False
    memory_defaulted: bool = False
    cpu_raised_to: Optional[int] = None
    memory_raised_to: Optional[int] = None


class ResourceLimitAggregator:
    """
    Reduce per-container CPU and memory limits into one job-wide ceiling.

    Containers must be added in the order they are iterated by the submission (init containers first). The final
    ceiling does not depend on that order, the reported ``LimitUpdate`` values do. The aggregator never logs, callers
    decide how to report defaults.
    """

    def __init__(self) -> None:
        self.limits = ResourceLimits()
        self.containers_seen = 0

    @staticmethod
    def round_cpu(cpu: float) -> int:
        return int(math.ceil(cpu))

    def add(self, container_name: str, cpu: float, memory: Optional[int]) -> LimitUpdate:
        """
        Fold one container's declared limits into the running ceiling.

        Args:
            container_name (str): Name of the container, used only for reporting.
            cpu (float): Declared CPU limit, 0 means undeclared.
            memory (Optional[int]): Declared memory limit in bytes, 0 or None means undeclared.

        Returns:
            LimitUpdate: Which limits fell back to the default and which ones raised the ceiling.
        """
        self.containers_seen += 1
        cpu_units = self.round_cpu(cpu)
        memory_bytes = memory or 0

        cpu_defaulted, cpu_raised_to = False, None
        if cpu_units == 0 and self.limits.cpu_default:
            self.limits.cpu = DEFAULT_CPU_LIMIT
            cpu_defaulted = True
        elif cpu_units > self.limits.cpu:
            self.limits.cpu = cpu_units
            self.limits.cpu_default = False
            cpu_raised_to = cpu_units

        memory_defaulted, memory_raised_to = False, None
        if memory_bytes == 0 and self.limits.memory_default:
            self.limits.memory = DEFAULT_MEMORY_LIMIT
            memory_defaulted = True
        elif memory_bytes > self.limits.memory:
            self.limits.memory = memory_bytes
            self.limits.memory_default = False
            memory_raised_to = memory_bytes

        return LimitUpdate(
            container_name=container_name,
            cpu_defaulted=cpu_defaulted,
            memory_defaulted=memory_defaulted,
            cpu_raised_to=cpu_raised_to,
            memory_raised_to=memory_raised_to,
        )

    def result(self) -> ResourceLimits:
        """Return a copy of the current ceiling."""
        return ResourceLimits(
            cpu=self.limits.cpu,
            memory=self.limits.memory,
            cpu_default=self.limits.cpu_default,
            memory_default=self.limits.memory_default,
        )


def aggregate_limits(containers: list[tuple[str, float, Optional[int]]]) -> tuple[ResourceLimits, list[LimitUpdate]]:
    """Aggregate ``(name, cpu, memory)`` triples in order and return the ceiling plus per-container updates."""
    aggregator = ResourceLimitAggregator()
    updates = [aggregator.add(name, cpu, memory) for name, cpu, memory in containers]
    return aggregator.result(), updates

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

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class SubmissionStage(str, Enum):
    """Stages of one pod submission, in the order they are entered."""

    RECEIVED = "Received"
    RUNTIME_SELECTED = "RuntimeSelected"
    PER_CONTAINER_PROCESSING = "PerContainerProcessing"
    SCRIPT_GENERATED = "ScriptGenerated"
    SUBMITTED = "Submitted"
    JOB_RECORDED = "JobRecorded"
    RESPONDED = "Responded"

    @property
    def order(self) -> int:
        return list(SubmissionStage).index(self)


@dataclass
class SubmissionTrace:
    """Attributes and events collected while processing one submission."""

    attributes: Dict[str, Any] = field(default_factory=dict)
    events: List[str] = field(default_factory=list)
    stages: List[SubmissionStage] = field(default_factory=list)

    def enter(self, stage: SubmissionStage) -> None:
        if self.stages and stage.order < self.stages[-1].order:
            raise RuntimeError(f"Cannot move back from stage '{self.stages[-1].value}' to '{stage.value}'")
        if not self.stages or self.stages[-1] != stage:
            self.stages.append(stage)

    @property
    def stage(self) -> SubmissionStage:
        return self.stages[-1] if self.stages else SubmissionStage.RECEIVED

    def set_attributes(self, attributes: Dict[str, Any]) -> None:
        self.attributes.update(attributes)

    def add_event(self, event: str) -> None:
        self.events.append(event)


class SubmissionOutcome(BaseModel):
    """Caller-visible result of a successful submission."""

    model_config = ConfigDict(populate_by_name=True)

    pod_uid: str = Field(alias="PodUID")
    pod_jid: str = Field(alias="PodJID")

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode()

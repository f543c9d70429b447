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

"""Subset of the Kubernetes pod model that the sidecar receives on submission."""

import math
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from podbridge.util.utils import MAX_MEM_BYTES

Quantity = Union[str, int, float]

_BINARY_SUFFIXES = {"Ki": 2**10, "Mi": 2**20, "Gi": 2**30, "Ti": 2**40, "Pi": 2**50, "Ei": 2**60}
_DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}
_QUANTITY_RE = re.compile(r"([+-]?[0-9.]+)([eE][+-]?[0-9]+|Ki|Mi|Gi|Ti|Pi|Ei|[numkMGTPE]?)")

# Limits are sent to sbatch as 64-bit integers.
MAX_LIMIT = Decimal(MAX_MEM_BYTES)


def parse_quantity(quantity: Quantity) -> Decimal:
    """
    Parse a Kubernetes resource quantity (``500m``, ``1.5``, ``2Gi``, ``1e3``) into a number.

    Args:
        quantity (Quantity): The quantity as received in the pod spec.

    Returns:
        Decimal: The quantity in base units (cores or bytes).

    Raises:
        ValueError: If the quantity cannot be parsed.
    """
    if isinstance(quantity, (int, float)):
        number, suffix = str(quantity), ""
    else:
        match = _QUANTITY_RE.fullmatch(quantity.strip())
        if not match:
            raise ValueError(f"Invalid quantity: '{quantity}'")
        number, suffix = match.groups()

    try:
        value = Decimal(number)
        if suffix in _BINARY_SUFFIXES:
            value *= _BINARY_SUFFIXES[suffix]
        elif suffix and suffix[0] in "eE":
            value *= Decimal(10) ** int(suffix[1:])
        else:
            value *= _DECIMAL_SUFFIXES[suffix]
    except ArithmeticError as e:
        raise ValueError(f"Invalid quantity: '{quantity}'") from e

    if not value.is_finite():
        raise ValueError(f"Invalid quantity: '{quantity}'")
    return value


class ObjectMeta(BaseModel):
    """Pod metadata used for naming and annotation-driven options."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    namespace: str = "default"
    uid: str
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)


class EnvVar(BaseModel):
    """A container environment variable, already resolved by the caller."""

    model_config = ConfigDict(extra="ignore")

    name: str
    value: str = ""


class VolumeMount(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    mount_path: str = Field(alias="mountPath")
    sub_path: str = Field(default="", alias="subPath")
    read_only: bool = Field(default=False, alias="readOnly")


class ResourceRequirements(BaseModel):
    model_config = ConfigDict(extra="ignore")

    limits: Dict[str, Quantity] = Field(default_factory=dict)
    requests: Dict[str, Quantity] = Field(default_factory=dict)


class Container(BaseModel):
    """A single container of the pod."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    image: str
    command: List[str] = Field(default_factory=list)
    args: List[str] = Field(default_factory=list)
    env: List[EnvVar] = Field(default_factory=list)
    resources: ResourceRequirements = Field(default_factory=ResourceRequirements)
    volume_mounts: List[VolumeMount] = Field(default_factory=list, alias="volumeMounts")

    @field_validator("command", "args", "env", "volume_mounts", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    @property
    def cpu_limit(self) -> float:
        """Declared CPU limit in cores, 0 if not declared."""
        quantity = self.resources.limits.get("cpu")
        if quantity is None:
            return 0.0
        return float(parse_quantity(quantity))

    @property
    def memory_limit(self) -> Optional[int]:
        """Declared memory limit in bytes, None if not declared."""
        quantity = self.resources.limits.get("memory")
        if quantity is None:
            return None
        return int(math.ceil(parse_quantity(quantity)))

    @field_validator("resources")
    @classmethod
    def _validate_limits(cls, value: ResourceRequirements) -> ResourceRequirements:
        for key in ("cpu", "memory"):
            if key not in value.limits:
                continue
            quantity = parse_quantity(value.limits[key])
            if quantity < 0:
                raise ValueError(f"Negative {key} limit: '{value.limits[key]}'")
            if quantity > MAX_LIMIT:
                raise ValueError(f"{key} limit out of range: '{value.limits[key]}'")
        return value


class KeyToPath(BaseModel):
    key: str
    path: str


class ConfigMapVolumeSource(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    items: List[KeyToPath] = Field(default_factory=list)


class SecretVolumeSource(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    secret_name: str = Field(alias="secretName")
    items: List[KeyToPath] = Field(default_factory=list)


class HostPathVolumeSource(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str


class Volume(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    config_map: Optional[ConfigMapVolumeSource] = Field(default=None, alias="configMap")
    secret: Optional[SecretVolumeSource] = None
    empty_dir: Optional[dict] = Field(default=None, alias="emptyDir")
    host_path: Optional[HostPathVolumeSource] = Field(default=None, alias="hostPath")


class PodSpec(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    containers: List[Container] = Field(default_factory=list)
    init_containers: List[Container] = Field(default_factory=list, alias="initContainers")
    volumes: List[Volume] = Field(default_factory=list)

    @field_validator("containers", "init_containers", "volumes", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


class Pod(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    metadata: ObjectMeta
    spec: PodSpec

    @model_validator(mode="after")
    def _validate_containers(self) -> "Pod":
        names = [c.name for c in self.all_containers]
        if not names:
            raise ValueError("Pod must declare at least one container")
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate container names: {', '.join(duplicates)}")
        return self

    @property
    def uid(self) -> str:
        return self.metadata.uid

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def all_containers(self) -> List[Container]:
        """Init containers first, then regular containers, each group in declared order."""
        return [*self.spec.init_containers, *self.spec.containers]

    def is_init_container(self, index: int) -> bool:
        return index < len(self.spec.init_containers)


class ConfigMap(BaseModel):
    model_config = ConfigDict(extra="ignore")

    metadata: Dict[str, Any] = Field(default_factory=dict)
    data: Dict[str, str] = Field(default_factory=dict)

    @property
    def name(self) -> str:
        return str(self.metadata.get("name", ""))


class Secret(BaseModel):
    """Secret with base64 encoded ``data`` and/or plain ``stringData``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    metadata: Dict[str, Any] = Field(default_factory=dict)
    data: Dict[str, str] = Field(default_factory=dict)
    string_data: Dict[str, str] = Field(default_factory=dict, alias="stringData")

    @property
    def name(self) -> str:
        return str(self.metadata.get("name", ""))


class RetrievedContainer(BaseModel):
    """Volume contents retrieved by the caller for one container."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    config_maps: List[ConfigMap] = Field(default_factory=list, alias="configMaps")
    secrets: List[Secret] = Field(default_factory=list)
    empty_dirs: List[str] = Field(default_factory=list, alias="emptyDirs")

    @field_validator("config_maps", "secrets", "empty_dirs", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


class RetrievedPodData(BaseModel):
    """Submission request: the pod plus the volume contents it references."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    pod: Pod
    container: List[RetrievedContainer] = Field(default_factory=list)

    @field_validator("container", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    def retrieved_for(self, container_name: str) -> Optional[RetrievedContainer]:
        return next((c for c in self.container if c.name == container_name), None)

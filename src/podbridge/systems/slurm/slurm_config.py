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

import logging
from pathlib import Path
from typing import List

import toml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer

from podbridge._core.exceptions import SidecarConfigParsingError, format_validation_error


class SlurmSidecarConfig(BaseModel):
    """
    Configuration of the Slurm sidecar.

    Attributes
        sbatch_path (str): Path to the ``sbatch`` binary.
        scancel_path (str): Path to the ``scancel`` binary.
        data_root_folder (Path): Root of the per-pod working directories.
        command_prefix (str): Shell lines inserted into every job script before containers are started.
        image_prefix (str): Prefix for image references without a scheme, e.g. ``docker://``.
        bash_path (str): Shell used for the job script shebang and for running scheduler commands.
        container_runtime (str): Container runtime variant name (``singularity`` or ``enroot``).
        tsocks (bool): Run scheduler commands through the tsocks wrapper at ``tsocks_path``.
        export_pod_data (bool): Materialize configMap and secret volumes into the working directory.
    """

    model_config = ConfigDict(extra="forbid")

    sbatch_path: str = "/usr/bin/sbatch"
    scancel_path: str = "/usr/bin/scancel"
    data_root_folder: Path = Path(".local/podbridge/")
    command_prefix: str = ""
    image_prefix: str = "docker://"
    bash_path: str = "/bin/bash"
    container_runtime: str = "singularity"

    singularity_path: str = "singularity"
    singularity_prefix: str = ""
    singularity_default_options: List[str] = Field(default_factory=lambda: ["--nv", "--no-eval", "--containall"])

    enroot_path: str = "enroot"
    enroot_prefix: str = ""
    enroot_default_options: List[str] = Field(default_factory=lambda: ["--rw"])

    tsocks: bool = False
    tsocks_path: str = ""

    export_pod_data: bool = True
    sidecar_port: int = 4000
    socket: str = ""

    @field_serializer("data_root_folder")
    def _path_serializer(self, v: Path) -> str:
        return str(v)

    def pod_files_path(self, namespace: str, pod_uid: str) -> Path:
        """Return the working directory for one pod."""
        return self.data_root_folder / f"{namespace}-{pod_uid}"

    def scheduler_command(self, *parts: str) -> str:
        """Build a scheduler command line, wrapped with tsocks when enabled."""
        command = " ".join(parts)
        if self.tsocks:
            return f"{self.tsocks_path} {command}"
        return command


def load_config(config_path: Path) -> SlurmSidecarConfig:
    """
    Load and validate the sidecar configuration from a TOML file.

    Args:
        config_path (Path): Path to the TOML configuration.

    Returns:
        SlurmSidecarConfig: The validated configuration.

    Raises:
        SidecarConfigParsingError: If the file cannot be read or fails validation.
    """
    try:
        with Path(config_path).open() as f:
            logging.debug(f"Opened sidecar config file: {config_path}")
            data = toml.load(f)
    except (OSError, toml.TomlDecodeError) as e:
        logging.error(f"Failed to read sidecar config {config_path}: {e}")
        raise SidecarConfigParsingError(f"Failed to read sidecar config {config_path}") from e

    try:
        return SlurmSidecarConfig.model_validate(data)
    except ValidationError as e:
        logging.error(f"Failed to parse sidecar config: {config_path}")
        for err in e.errors(include_url=False):
            logging.error(format_validation_error(err))
        raise SidecarConfigParsingError("Failed to parse sidecar config") from e

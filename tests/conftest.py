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

import subprocess
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple
from unittest.mock import Mock

import pytest

from podbridge.systems.slurm import SlurmScheduler, SlurmSidecarConfig, SlurmSubmitHandler
from podbridge.util import CommandShell

POD_UID = "7f3c9a1e-5b2d-4c8f-9e6a-0d1b2c3d4e5f"


class MockCommandShell(CommandShell):
    """Records executed commands and replays canned ``(stdout, stderr, returncode)`` results."""

    def __init__(self, results: Optional[List[Tuple[str, str, int]]] = None):
        super().__init__()
        self.commands: List[str] = []
        self.results = list(results or [])

    def _spawn(self, command):
        self.commands.append(command)
        stdout, stderr, returncode = self.results.pop(0) if self.results else ("", "", 0)
        mock_popen = Mock(spec=subprocess.Popen)
        mock_popen.communicate.return_value = (stdout, stderr)
        mock_popen.returncode = returncode
        return mock_popen


def make_container(name: str, image: str = "ubuntu:22.04", cpu: Any = None, memory: Any = None, **extra) -> dict:
    container: Dict[str, Any] = {"name": name, "image": image}
    limits = {}
    if cpu is not None:
        limits["cpu"] = cpu
    if memory is not None:
        limits["memory"] = memory
    if limits:
        container["resources"] = {"limits": limits}
    container.update(extra)
    return container


@pytest.fixture
def make_request() -> Callable[..., dict]:
    def _make_request(
        containers: List[dict],
        init_containers: Optional[List[dict]] = None,
        volumes: Optional[List[dict]] = None,
        annotations: Optional[Dict[str, str]] = None,
        retrieved: Optional[List[dict]] = None,
        uid: str = POD_UID,
    ) -> dict:
        return {
            "pod": {
                "metadata": {
                    "name": "test-pod",
                    "namespace": "default",
                    "uid": uid,
                    "annotations": annotations or {},
                },
                "spec": {
                    "containers": containers,
                    "initContainers": init_containers or [],
                    "volumes": volumes or [],
                },
            },
            "container": retrieved or [],
        }

    return _make_request


@pytest.fixture
def slurm_config(tmp_path: Path) -> SlurmSidecarConfig:
    return SlurmSidecarConfig(
        sbatch_path="/usr/bin/sbatch",
        scancel_path="/usr/bin/scancel",
        data_root_folder=tmp_path / "data",
    )


@pytest.fixture
def enroot_config(slurm_config: SlurmSidecarConfig) -> SlurmSidecarConfig:
    return slurm_config.model_copy(update={"container_runtime": "enroot"})


@pytest.fixture
def cmd_shell() -> MockCommandShell:
    return MockCommandShell([("Submitted batch job 4242\n", "", 0)])


@pytest.fixture
def scheduler(slurm_config: SlurmSidecarConfig, cmd_shell: MockCommandShell) -> SlurmScheduler:
    return SlurmScheduler(slurm_config, cmd_shell)


@pytest.fixture
def submit_handler(slurm_config: SlurmSidecarConfig, scheduler: SlurmScheduler) -> SlurmSubmitHandler:
    return SlurmSubmitHandler(slurm_config, scheduler=scheduler)

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
import shlex
from pathlib import Path
from typing import List

from podbridge._core.container_runtime import ContainerCommand
from podbridge._core.exceptions import CollaboratorError
from podbridge._core.resource_limits import ResourceLimits
from podbridge.models.pod import ObjectMeta
from podbridge.util.utils import MEM_UNITS, format_mem

from .slurm_config import SlurmSidecarConfig

SBATCH_FLAGS_ANNOTATION = "slurm-job.vk.io/flags"
PRE_EXEC_ANNOTATION = "slurm-job.vk.io/pre-exec"
SCRIPT_FILE_NAME = "job.sh"


def _sbatch_mem(memory: int) -> str:
    mib = MEM_UNITS["M"]
    return format_mem(-(-memory // mib) * mib)


def _append_sbatch_directives(
    content: List[str], pod_uid: str, files_path: Path, metadata: ObjectMeta, limits: ResourceLimits
) -> None:
    content.append(f"#SBATCH --job-name={pod_uid}")
    content.append(f"#SBATCH --output={files_path / 'job.out'}")
    content.append(f"#SBATCH --error={files_path / 'job.err'}")
    content.append(f"#SBATCH --cpus-per-task={limits.cpu}")
    content.append(f"#SBATCH --mem={_sbatch_mem(limits.memory)}")

    for flag in shlex.split(metadata.annotations.get(SBATCH_FLAGS_ANNOTATION, "")):
        content.append(f"#SBATCH {flag}")


def _default_limits_banner(limits: ResourceLimits) -> List[str]:
    banner = []
    if limits.cpu_default:
        banner.append(f"# WARNING: no CPU limit declared by any container, requesting {limits.cpu} CPU")
    if limits.memory_default:
        banner.append(f"# WARNING: no memory limit declared by any container, requesting {_sbatch_mem(limits.memory)}")
    return banner


def _container_line(cmd: ContainerCommand) -> str:
    parts = [*cmd.runtime_command, *(shlex.quote(p) for p in cmd.container_command + cmd.container_args)]
    return f"run_container {shlex.quote(cmd.container_name)} {' '.join(parts)}"


def render_slurm_script(
    config: SlurmSidecarConfig,
    pod_uid: str,
    files_path: Path,
    metadata: ObjectMeta,
    commands: List[ContainerCommand],
    limits: ResourceLimits,
) -> str:
    """Render the batch script text for one pod."""
    files_path = files_path.absolute()
    content = [f"#!{config.bash_path}"]
    _append_sbatch_directives(content, pod_uid, files_path, metadata, limits)
    content.extend(_default_limits_banner(limits))
    content.append("")

    if config.command_prefix:
        content.extend([config.command_prefix, ""])
    if pre_exec := metadata.annotations.get(PRE_EXEC_ANNOTATION):
        content.extend([pre_exec, ""])

    content.extend(
        [
            "run_container() {",
            "    local name=$1",
            "    shift",
            f'    "$@" > "{files_path}/${{name}}.out" 2>&1',
            "    local rc=$?",
            f'    echo "$rc" > "{files_path}/${{name}}.status"',
            "    return $rc",
            "}",
            "",
        ]
    )

    for cmd in (c for c in commands if c.is_init_container):
        content.extend(cmd.setup_commands)
        content.append(f"{_container_line(cmd)} || exit $?")

    content.append("pids=()")
    for cmd in (c for c in commands if not c.is_init_container):
        content.extend(cmd.setup_commands)
        content.append(f"{_container_line(cmd)} &")
        content.append("pids+=($!)")

    content.extend(
        [
            "",
            "rc=0",
            'for pid in "${pids[@]}"; do',
            '    wait "$pid" || rc=$?',
            "done",
            "exit $rc",
            "",
        ]
    )
    return "\n".join(content)


def produce_slurm_script(
    config: SlurmSidecarConfig,
    pod_uid: str,
    files_path: Path,
    metadata: ObjectMeta,
    commands: List[ContainerCommand],
    limits: ResourceLimits,
) -> Path:
    """
    Write the batch script for one pod into its working directory.

    Args:
        config (SlurmSidecarConfig): Sidecar configuration.
        pod_uid (str): UID of the pod, used as job name.
        files_path (Path): Working directory of the pod.
        metadata (ObjectMeta): Pod metadata, annotations may add sbatch flags and pre-exec lines.
        commands (List[ContainerCommand]): Assembled container commands, init containers first.
        limits (ResourceLimits): Job-wide resource ceiling with the default-used flags.

    Returns:
        Path: Path of the written script.

    Raises:
        CollaboratorError: If the script cannot be written.
    """
    try:
        script = render_slurm_script(config, pod_uid, files_path, metadata, commands, limits)
        script_path = files_path / SCRIPT_FILE_NAME
        files_path.mkdir(parents=True, exist_ok=True)
        with script_path.open("w") as f:
            f.write(script)
    except (OSError, ValueError) as e:
        raise CollaboratorError("script", f"Failed to write batch script for pod {pod_uid}: {e}") from e

    logging.debug(f"Batch script for pod {pod_uid} written to {script_path}")
    return script_path

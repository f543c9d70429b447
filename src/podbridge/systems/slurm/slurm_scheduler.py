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
import re
import shutil
from pathlib import Path
from typing import Optional

from podbridge._core.exceptions import (
    CollaboratorError,
    CompensationError,
    DuplicatePodError,
    JobIdRetrievalError,
    JobSubmissionError,
)
from podbridge._core.job_store import JobStore
from podbridge.util import CommandResult, CommandShell

from .slurm_config import SlurmSidecarConfig

JOB_ID_FILE_NAME = "JobID.jid"


class SlurmScheduler:
    """
    Thin wrapper over the Slurm command line tools used by the submission path.

    Attributes
        config (SlurmSidecarConfig): Sidecar configuration.
        cmd_shell (CommandShell): An instance of CommandShell for executing system commands.
    """

    def __init__(self, config: SlurmSidecarConfig, cmd_shell: Optional[CommandShell] = None) -> None:
        self.config = config
        self.cmd_shell = cmd_shell or CommandShell(config.bash_path)

    @staticmethod
    def _missing_program(result: CommandResult, program: str) -> str:
        return f"'{program}' not found: {result.stderr.strip()}"

    def submit(self, script_path: Path) -> str:
        """
        Submit a batch script with sbatch.

        Returns:
            str: Raw sbatch standard output.

        Raises:
            JobSubmissionError: If sbatch cannot be run or exits with a non-zero code.
        """
        command = self.config.scheduler_command(self.config.sbatch_path, str(script_path))
        result = self.cmd_shell.execute(command)
        if not result.ok:
            if result.not_found:
                message = self._missing_program(result, self.config.sbatch_path)
            else:
                message = f"sbatch exited with code {result.returncode}."
            raise JobSubmissionError(command=command, stdout=result.stdout, stderr=result.stderr, message=message)
        logging.info(result.stdout.strip())
        return result.stdout

    @staticmethod
    def get_job_id(stdout: str) -> Optional[str]:
        match = re.search(r"Submitted batch job (\d+)", stdout)
        if match:
            return match.group(1)
        return None

    def extract_job_id(self, output: str) -> str:
        """
        Extract the job ID from sbatch output.

        Raises:
            JobIdRetrievalError: If the output carries no job ID.
        """
        job_id = self.get_job_id(output)
        if job_id is None:
            raise JobIdRetrievalError(
                command=self.config.sbatch_path, stdout=output, stderr="", message="Failed to retrieve job ID."
            )
        return job_id

    def record_job(self, pod_uid: str, store: JobStore, job_id: str, files_path: Path) -> str:
        """
        Associate a submitted job with its pod.

        The store entry is created before the job ID file is written, so a failed write still leaves enough
        information for cancellation.

        Returns:
            str: The job ID.

        Raises:
            DuplicatePodError: If the pod already has a job. The existing entry is left as is.
            CollaboratorError: If the job ID file cannot be written.
        """
        if not store.insert_if_absent(pod_uid, job_id):
            raise DuplicatePodError(pod_uid, store.get(pod_uid))

        try:
            (files_path / JOB_ID_FILE_NAME).write_text(job_id)
        except OSError as e:
            raise CollaboratorError("record", f"Failed to write job ID file for pod {pod_uid}: {e}") from e

        logging.info(f"Pod {pod_uid} submitted as Slurm job {job_id}")
        return job_id

    def cancel_job(self, pod_uid: str, store: JobStore, job_id: Optional[str] = None) -> None:
        """
        Cancel a job of a pod.

        With a job ID only that job is cancelled, and the store entry is dropped only if it still points at it.
        Without one the job is cancelled by name (the job name is the pod UID) and the store is left untouched.

        Raises:
            CompensationError: If scancel cannot be run or fails.
        """
        target = job_id if job_id is not None else f"--name={pod_uid}"
        if job_id is not None:
            store.remove_if(pod_uid, job_id)

        command = self.config.scheduler_command(self.config.scancel_path, target)
        try:
            result = self.cmd_shell.execute(command)
        except OSError as e:
            raise CompensationError(f"Failed to run '{command}': {e}") from e

        if result.not_found:
            raise CompensationError(self._missing_program(result, self.config.scancel_path))
        if not result.ok:
            raise CompensationError(f"'{command}' exited with code {result.returncode}: {result.stderr.strip()}")
        logging.info(f"Cancelled Slurm job {target} of pod {pod_uid}")

    @staticmethod
    def purge(files_path: Path) -> None:
        """
        Remove the working directory of a pod.

        Raises:
            CompensationError: If the directory exists and cannot be removed.
        """
        if not files_path.exists():
            return
        try:
            shutil.rmtree(files_path)
        except OSError as e:
            raise CompensationError(f"Failed to remove {files_path}: {e}") from e
        logging.debug(f"Removed working directory {files_path}")

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

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .submission import SubmissionStage


class PodBridgeError(Exception):
    """Base class for all errors raised by podbridge."""


class FormatError(PodBridgeError, ValueError):
    """Raised when a human-readable size token does not match the expected grammar."""


class UnsupportedRuntimeError(PodBridgeError):
    """
    Raised when the configured container runtime is not one of the supported variants.

    Attributes
        runtime (str): The rejected runtime name.
    """

    def __init__(self, runtime: str, supported: list[str]):
        super().__init__(f"Unsupported container runtime '{runtime}'. Supported runtimes: {', '.join(supported)}.")
        self.runtime = runtime
        self.supported = supported


class SidecarConfigParsingError(PodBridgeError):
    """Raised when the sidecar configuration file cannot be loaded or validated."""


class CollaboratorError(PodBridgeError):
    """
    Raised when one of the submission collaborators fails.

    The original exception is chained as ``__cause__``.

    Attributes
        collaborator (str): Name of the failing collaborator (mounts, envs, image, script, submit, record).
        message (str): A description of the failure.
    """

    def __init__(self, collaborator: str, message: str):
        super().__init__(message)
        self.collaborator = collaborator
        self.message = message

    def __str__(self):
        return f"{self.collaborator}: {self.message}"


class DuplicatePodError(CollaboratorError):
    """
    Raised when a pod UID is already tracked by another submission.

    Attributes
        pod_uid (str): The pod UID.
        job_id (Optional[str]): The job already recorded for the pod, if known.
    """

    def __init__(self, pod_uid: str, job_id: Optional[str]):
        super().__init__("record", f"Pod {pod_uid} is already tracked as job {job_id}")
        self.pod_uid = pod_uid
        self.job_id = job_id


class CompensationError(PodBridgeError):
    """Raised by cleanup when cancelling a job or purging its working directory fails."""


class JobSubmissionError(PodBridgeError):
    """
    Exception raised for errors that occur during job submission.

    Attributes
        command (str): The command that was executed to submit the job.
        stdout (str): The standard output from the command execution.
        stderr (str): The standard error from the command execution.
        message (str): A custom message describing the error.
    """

    def __init__(self, command: str, stdout: str, stderr: str, message: str):
        """
        Initialize a JobSubmissionError instance.

        Args:
            command (str): The command that was executed to submit the job.
            stdout (str): The standard output from the command execution.
            stderr (str): The standard error from the command execution.
            message (str): A custom message describing the error.
        """
        super().__init__(message)
        self.command = command
        self.stdout = stdout.strip()
        self.stderr = stderr.strip()
        self.message = message

    def __str__(self):
        return (
            f"\nERROR: Job Submission Failed\n"
            f"\tMessage: {self.message}\n"
            f"\tCommand: '{self.command}'\n"
            f"\tstdout: '{self.stdout}'\n"
            f"\tstderr: '{self.stderr}'\n"
        )


class JobIdRetrievalError(JobSubmissionError):
    """Exception raised when a job ID cannot be retrieved after job submission."""

    pass


class SubmissionFailed(PodBridgeError):
    """
    Terminal failure of one pod submission.

    Attributes
        stage (SubmissionStage): The stage the submission was in when it failed.
        cause (BaseException): The error that made the stage fail.
    """

    def __init__(self, stage: "SubmissionStage", cause: BaseException):
        super().__init__(f"Submission failed at stage '{stage.value}': {cause}")
        self.stage = stage
        self.cause = cause


def format_validation_error(err: Any) -> str:
    """
    Format one pydantic validation error entry into a single log line.

    Args:
        err: An item of ``ValidationError.errors()``.

    Returns:
        str: Human-readable message with the field location.
    """
    loc = ".".join(str(part) for part in err.get("loc", ()))
    msg = err.get("msg", "")
    if err.get("type") == "missing":
        return f"Field '{loc}': {msg}"
    if "input" in err and not isinstance(err["input"], dict):
        return f"Field '{loc}' with value '{err['input']}' is invalid: {msg}"
    return f"Field '{loc}': {msg}"

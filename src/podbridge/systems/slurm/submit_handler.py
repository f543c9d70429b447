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
from typing import Any, Callable, List, Optional, Tuple, TypeVar

from pydantic import ValidationError

from podbridge._core.container_runtime import ContainerCommand, ContainerRuntime
from podbridge._core.exceptions import (
    CollaboratorError,
    CompensationError,
    DuplicatePodError,
    SubmissionFailed,
    UnsupportedRuntimeError,
)
from podbridge._core.job_store import JobStore
from podbridge._core.resource_limits import LimitUpdate, ResourceLimitAggregator, ResourceLimits
from podbridge._core.submission import SubmissionOutcome, SubmissionStage, SubmissionTrace
from podbridge.models.pod import RetrievedPodData
from podbridge.runtimes import create_runtime
from podbridge.util.utils import format_mem

from .prepare import prepare_envs, prepare_image, prepare_mounts
from .slurm_config import SlurmSidecarConfig
from .slurm_scheduler import SlurmScheduler
from .slurm_script import produce_slurm_script

GENERIC_ERROR_MESSAGE = b"Some errors occurred while creating containers. Check Slurm Sidecar's logs"

T = TypeVar("T")


class SlurmSubmitHandler:
    """
    Turns one pod into one Slurm job.

    A submission goes through the stages of ``SubmissionStage`` in order. Nothing is written for the scheduler before
    every container has been prepared, and any failure aborts the whole pod: the working directory is removed and,
    once a job may exist in Slurm, the job is cancelled first.

    Attributes
        config (SlurmSidecarConfig): Sidecar configuration.
        store (JobStore): Pod UID to job ID mapping shared by all submissions.
        scheduler (SlurmScheduler): Submits, records and cancels jobs.
        last_trace (Optional[SubmissionTrace]): Trace of the most recent submission, for diagnostics.
    """

    def __init__(
        self, config: SlurmSidecarConfig, store: Optional[JobStore] = None, scheduler: Optional[SlurmScheduler] = None
    ) -> None:
        self.config = config
        self.store = store if store is not None else JobStore()
        self.scheduler = scheduler or SlurmScheduler(config)
        self.last_trace: Optional[SubmissionTrace] = None

    def handle(self, body: bytes) -> Tuple[int, bytes]:
        """
        Process a serialized submission request.

        Returns:
            Tuple[int, bytes]: ``(200, {"PodUID": ..., "PodJID": ...})`` on success, ``(500, generic message)``
            on any failure. Failure details only go to the logs.
        """
        logging.info("Slurm Sidecar: received Submit call")
        trace = SubmissionTrace()
        self.last_trace = trace
        try:
            pod_data = self.parse_request(body)
            outcome = self.submit(pod_data, trace)
        except SubmissionFailed as e:
            logging.error(str(e))
            return 500, GENERIC_ERROR_MESSAGE

        return 200, outcome.to_json()

    @staticmethod
    def parse_request(body: bytes) -> RetrievedPodData:
        try:
            return RetrievedPodData.model_validate_json(body)
        except ValidationError as e:
            raise SubmissionFailed(SubmissionStage.RECEIVED, e) from e

    def submit(self, pod_data: RetrievedPodData, trace: Optional[SubmissionTrace] = None) -> SubmissionOutcome:
        """
        Run one submission to completion.

        Raises:
            SubmissionFailed: With the stage that failed. Cleanup has already run when this is raised.
        """
        trace = trace if trace is not None else SubmissionTrace()
        pod = pod_data.pod
        files_path = self.config.pod_files_path(pod.namespace, pod.uid)
        trace.enter(SubmissionStage.RECEIVED)

        try:
            runtime = create_runtime(self.config.container_runtime, self.config)
        except UnsupportedRuntimeError as e:
            raise SubmissionFailed(SubmissionStage.RUNTIME_SELECTED, e) from e
        if pod.uid in self.store:
            # The working directory belongs to the tracked job, leave it alone.
            duplicate = DuplicatePodError(pod.uid, self.store.get(pod.uid))
            raise SubmissionFailed(SubmissionStage.RUNTIME_SELECTED, duplicate)
        trace.enter(SubmissionStage.RUNTIME_SELECTED)

        try:
            commands, limits = self._process_containers(runtime, pod_data, files_path, trace)
        except Exception as e:
            self._purge(files_path)
            raise SubmissionFailed(SubmissionStage.PER_CONTAINER_PROCESSING, e) from e

        trace.set_attributes({"job.limits.cpu": limits.cpu, "job.limits.memory": limits.memory})

        try:
            script_path = self._call(
                "script", produce_slurm_script, self.config, pod.uid, files_path, pod.metadata, commands, limits
            )
        except CollaboratorError as e:
            self._purge(files_path)
            raise SubmissionFailed(SubmissionStage.SCRIPT_GENERATED, e) from e
        trace.enter(SubmissionStage.SCRIPT_GENERATED)

        try:
            output = self._call("submit", self.scheduler.submit, script_path)
        except CollaboratorError as e:
            trace.add_event("Failed to submit the Slurm job")
            self._purge(files_path)
            raise SubmissionFailed(SubmissionStage.SUBMITTED, e) from e
        trace.enter(SubmissionStage.SUBMITTED)

        try:
            job_id = self._call("record", self.scheduler.extract_job_id, output)
        except CollaboratorError as e:
            # The job may be live in Slurm under an unknown ID.
            self._cancel(pod.uid)
            self._purge(files_path)
            raise SubmissionFailed(SubmissionStage.JOB_RECORDED, e) from e

        try:
            self._call("record", self.scheduler.record_job, pod.uid, self.store, job_id, files_path)
        except CollaboratorError as e:
            self._cancel(pod.uid, job_id)
            if not isinstance(e, DuplicatePodError):
                self._purge(files_path)
            raise SubmissionFailed(SubmissionStage.JOB_RECORDED, e) from e
        trace.enter(SubmissionStage.JOB_RECORDED)
        trace.add_event(f"Slurm job successfully submitted with ID {job_id}")

        outcome = SubmissionOutcome(pod_uid=pod.uid, pod_jid=job_id)
        trace.enter(SubmissionStage.RESPONDED)
        logging.debug(f"Submission trace for pod {pod.uid}: {trace.attributes}")
        return outcome

    def _process_containers(
        self, runtime: ContainerRuntime, pod_data: RetrievedPodData, files_path: Path, trace: SubmissionTrace
    ) -> Tuple[List[ContainerCommand], ResourceLimits]:
        pod = pod_data.pod
        aggregator = ResourceLimitAggregator()
        commands: List[ContainerCommand] = []

        for i, container in enumerate(pod.all_containers):
            trace.enter(SubmissionStage.PER_CONTAINER_PROCESSING)
            logging.info(f"- Beginning script generation for container {container.name}")
            is_init = pod.is_init_container(i)

            update = self._call("limits", aggregator.add, container.name, container.cpu_limit, container.memory_limit)
            self._report_limit_update(update)

            mounts = self._call("mounts", prepare_mounts, self.config, pod_data, container, files_path)
            logging.debug(mounts)
            envs = self._call("envs", prepare_envs, self.config, pod_data, container, files_path)
            image = self._call("image", prepare_image, self.config, pod.metadata, container.image)

            logging.debug("-- Appending all commands together...")
            command = runtime.assemble(container, pod, is_init, envs, mounts, image)
            commands.append(command)

            prefix = f"job.container{i}"
            trace.set_attributes(
                {
                    f"{prefix}.name": container.name,
                    f"{prefix}.isinit": is_init,
                    f"{prefix}.envs": envs,
                    f"{prefix}.image": image,
                    f"{prefix}.command": list(container.command),
                    f"{prefix}.args": list(container.args),
                }
            )

        return commands, aggregator.result()

    @staticmethod
    def _report_limit_update(update: LimitUpdate) -> None:
        if update.cpu_defaulted:
            logging.warning(f"Max CPU resource not set for {update.container_name}. Only 1 CPU will be used")
        elif update.cpu_raised_to is not None:
            logging.info(f"Setting CPU limit to {update.cpu_raised_to}")

        if update.memory_defaulted:
            logging.warning(f"Max Memory resource not set for {update.container_name}. Only 1MB will be used")
        elif update.memory_raised_to is not None:
            logging.info(f"Setting Memory limit to {format_mem(update.memory_raised_to)}")

    @staticmethod
    def _call(collaborator: str, func: Callable[..., T], *args: Any) -> T:
        try:
            return func(*args)
        except CollaboratorError:
            raise
        except Exception as e:
            raise CollaboratorError(collaborator, str(e)) from e

    def _cancel(self, pod_uid: str, job_id: Optional[str] = None) -> None:
        try:
            self.scheduler.cancel_job(pod_uid, self.store, job_id)
        except CompensationError as e:
            logging.error(f"Failed to cancel the job of pod {pod_uid}: {e}")

    def _purge(self, files_path: Path) -> None:
        try:
            self.scheduler.purge(files_path)
        except CompensationError as e:
            logging.error(f"Failed to clean up {files_path}: {e}")

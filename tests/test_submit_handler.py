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

import json
import logging
from pathlib import Path
from typing import List, Optional

import pytest

from podbridge.core import (
    CollaboratorError,
    ContainerRuntime,
    DuplicatePodError,
    JobStore,
    ResourceLimitAggregator,
    RetrievedPodData,
    SubmissionFailed,
    SubmissionStage,
    SubmissionTrace,
    UnsupportedRuntimeError,
)
from podbridge.systems.slurm import GENERIC_ERROR_MESSAGE, SlurmScheduler, SlurmSidecarConfig, SlurmSubmitHandler
from podbridge.systems.slurm.slurm_scheduler import JOB_ID_FILE_NAME
from tests.conftest import POD_UID, MockCommandShell, make_container


class RecordingScheduler(SlurmScheduler):
    def __init__(self, config: SlurmSidecarConfig, cmd_shell: MockCommandShell):
        super().__init__(config, cmd_shell)
        self.calls: List[str] = []

    def cancel_job(self, pod_uid: str, store: JobStore, job_id: Optional[str] = None) -> None:
        self.calls.append(f"cancel {job_id or pod_uid}")
        super().cancel_job(pod_uid, store, job_id)

    def purge(self, files_path: Path) -> None:
        self.calls.append(f"purge {files_path.name}")
        super().purge(files_path)


@pytest.fixture
def files_path(slurm_config: SlurmSidecarConfig) -> Path:
    return slurm_config.pod_files_path("default", POD_UID)


def encode(request: dict) -> bytes:
    return json.dumps(request).encode()


def three_containers(make_request, logger_mounts: Optional[List[dict]] = None) -> dict:
    containers = [
        make_container("app", cpu="500m", memory="64Mi"),
        make_container("sidecar", cpu="2"),
        make_container("logger", command=["tail"], args=["-f", "/dev/null"]),
    ]
    if logger_mounts:
        containers[2]["volumeMounts"] = logger_mounts
    return make_request(containers)


def test_submit_success(
    submit_handler: SlurmSubmitHandler, cmd_shell: MockCommandShell, files_path: Path, make_request
):
    status, body = submit_handler.handle(encode(three_containers(make_request)))

    assert status == 200
    assert json.loads(body) == {"PodUID": POD_UID, "PodJID": "4242"}
    assert submit_handler.store.get(POD_UID) == "4242"
    assert (files_path / JOB_ID_FILE_NAME).read_text() == "4242"
    assert cmd_shell.commands == [f"/usr/bin/sbatch {files_path / 'job.sh'}"]

    script = (files_path / "job.sh").read_text()
    assert "#SBATCH --cpus-per-task=2\n" in script
    assert "#SBATCH --mem=64M\n" in script
    assert "# WARNING" not in script

    trace = submit_handler.last_trace
    assert trace is not None
    assert trace.stages == list(SubmissionStage)
    assert trace.attributes["job.limits.cpu"] == 2
    assert trace.attributes["job.container2.name"] == "logger"
    assert trace.attributes["job.container2.command"] == ["tail"]
    assert trace.attributes["job.container0.image"] == "docker://ubuntu:22.04"
    assert "Slurm job successfully submitted with ID 4242" in trace.events


def test_submit_scenario_fractional_cpu(submit_handler: SlurmSubmitHandler, make_request, files_path: Path):
    request = make_request([make_container("main", cpu="0.4")])

    submit_handler.submit(RetrievedPodData.model_validate(request))

    script = (files_path / "job.sh").read_text()
    assert "#SBATCH --cpus-per-task=1\n" in script
    assert "#SBATCH --mem=1M\n" in script
    assert "# WARNING: no memory limit declared" in script
    assert "# WARNING: no CPU limit declared" not in script


def test_submit_scenario_two_containers(submit_handler: SlurmSubmitHandler, make_request, files_path: Path):
    request = make_request([make_container("a", cpu="0", memory="2Mi"), make_container("b", cpu="3", memory="1Mi")])

    submit_handler.submit(RetrievedPodData.model_validate(request))

    script = (files_path / "job.sh").read_text()
    assert "#SBATCH --cpus-per-task=3\n" in script
    assert "#SBATCH --mem=2M\n" in script
    assert "# WARNING" not in script


def test_default_limit_warnings(
    submit_handler: SlurmSubmitHandler, make_request, caplog: pytest.LogCaptureFixture
):
    request = make_request([make_container("first"), make_container("second", cpu="2")])

    with caplog.at_level(logging.INFO):
        submit_handler.handle(encode(request))

    assert "Max CPU resource not set for first. Only 1 CPU will be used" in caplog.text
    assert "Max Memory resource not set for first. Only 1MB will be used" in caplog.text
    assert "Max Memory resource not set for second. Only 1MB will be used" in caplog.text
    assert "Max CPU resource not set for second" not in caplog.text
    assert "Setting CPU limit to 2" in caplog.text
    assert caplog.text.count("Max Memory resource not set") == 2


def test_init_containers_run_first(submit_handler: SlurmSubmitHandler, make_request, files_path: Path):
    request = make_request([make_container("app")], init_containers=[make_container("migrate", command=["migrate"])])

    submit_handler.handle(encode(request))

    lines = (files_path / "job.sh").read_text().splitlines()
    init_line = next(i for i, line in enumerate(lines) if line.startswith("run_container migrate"))
    app_line = next(i for i, line in enumerate(lines) if line.startswith("run_container app"))
    assert lines[init_line].endswith("|| exit $?")
    assert init_line < lines.index("pids=()") < app_line
    assert submit_handler.last_trace is not None
    assert submit_handler.last_trace.attributes["job.container0.isinit"] is True


def test_enroot_submission(enroot_config: SlurmSidecarConfig, make_request):
    cmd_shell = MockCommandShell([("Submitted batch job 17", "", 0)])
    handler = SlurmSubmitHandler(enroot_config, scheduler=SlurmScheduler(enroot_config, cmd_shell))
    container = make_container("app", volumeMounts=[{"name": "data", "mountPath": "/data", "readOnly": True}])
    request = make_request([container], volumes=[{"name": "data", "hostPath": {"path": "/lustre/data"}}])

    status, _ = handler.handle(encode(request))

    script = (enroot_config.pod_files_path("default", POD_UID) / "job.sh").read_text()
    assert status == 200
    assert f"enroot create --force --name app{POD_UID}" in script
    assert f"--mount /lustre/data:/data app{POD_UID}" in script
    assert ":ro" not in script


def test_unsupported_runtime(slurm_config: SlurmSidecarConfig, make_request, files_path: Path):
    config = slurm_config.model_copy(update={"container_runtime": "docker"})
    cmd_shell = MockCommandShell()
    handler = SlurmSubmitHandler(config, scheduler=SlurmScheduler(config, cmd_shell))
    pod_data = RetrievedPodData.model_validate(three_containers(make_request))
    trace = SubmissionTrace()

    with pytest.raises(SubmissionFailed) as excinfo:
        handler.submit(pod_data, trace)

    assert excinfo.value.stage is SubmissionStage.RUNTIME_SELECTED
    assert isinstance(excinfo.value.cause, UnsupportedRuntimeError)
    assert trace.stages == [SubmissionStage.RECEIVED]
    assert "job.container0.name" not in trace.attributes
    assert not files_path.exists()
    assert cmd_shell.commands == []


def test_mounts_failure_on_third_container(
    submit_handler: SlurmSubmitHandler, cmd_shell: MockCommandShell, make_request, files_path: Path
):
    request = three_containers(make_request, logger_mounts=[{"name": "missing", "mountPath": "/x"}])
    trace = SubmissionTrace()

    with pytest.raises(SubmissionFailed) as excinfo:
        submit_handler.submit(RetrievedPodData.model_validate(request), trace)

    assert excinfo.value.stage is SubmissionStage.PER_CONTAINER_PROCESSING
    assert isinstance(excinfo.value.cause, CollaboratorError)
    assert excinfo.value.cause.collaborator == "mounts"
    assert "job.container1.name" in trace.attributes
    assert "job.container2.name" not in trace.attributes
    assert not files_path.exists()
    assert cmd_shell.commands == []
    assert len(submit_handler.store) == 0


def test_script_failure(
    submit_handler: SlurmSubmitHandler,
    cmd_shell: MockCommandShell,
    make_request,
    files_path: Path,
    monkeypatch: pytest.MonkeyPatch,
):
    def fail(*args):
        raise OSError("No space left on device")

    monkeypatch.setattr("podbridge.systems.slurm.submit_handler.produce_slurm_script", fail)

    status, body = submit_handler.handle(encode(three_containers(make_request)))

    assert (status, body) == (500, GENERIC_ERROR_MESSAGE)
    assert cmd_shell.commands == []
    assert not files_path.exists()
    assert len(submit_handler.store) == 0
    assert submit_handler.last_trace is not None
    assert submit_handler.last_trace.stage is SubmissionStage.PER_CONTAINER_PROCESSING


def test_sbatch_failure(slurm_config: SlurmSidecarConfig, make_request, files_path: Path):
    cmd_shell = MockCommandShell([("", "sbatch: error: invalid partition specified", 1)])
    scheduler = RecordingScheduler(slurm_config, cmd_shell)
    handler = SlurmSubmitHandler(slurm_config, scheduler=scheduler)

    with pytest.raises(SubmissionFailed) as excinfo:
        handler.submit(RetrievedPodData.model_validate(three_containers(make_request)), SubmissionTrace())

    assert excinfo.value.stage is SubmissionStage.SUBMITTED
    assert excinfo.value.cause.collaborator == "submit"
    assert scheduler.calls == [f"purge {files_path.name}"]
    assert not files_path.exists()
    assert len(handler.store) == 0


def test_job_id_failure_cancels_before_cleanup(slurm_config: SlurmSidecarConfig, make_request, files_path: Path):
    cmd_shell = MockCommandShell([("sbatch: queued\n", "", 0)])
    scheduler = RecordingScheduler(slurm_config, cmd_shell)
    handler = SlurmSubmitHandler(slurm_config, scheduler=scheduler)

    status, body = handler.handle(encode(three_containers(make_request)))

    assert (status, body) == (500, GENERIC_ERROR_MESSAGE)
    assert scheduler.calls == [f"cancel {POD_UID}", f"purge {files_path.name}"]
    assert cmd_shell.commands[1] == f"/usr/bin/scancel --name={POD_UID}"
    assert POD_UID not in handler.store
    assert not files_path.exists()


def test_job_id_file_failure_cancels_recorded_job(
    slurm_config: SlurmSidecarConfig, make_request, files_path: Path, monkeypatch: pytest.MonkeyPatch
):
    cmd_shell = MockCommandShell([("Submitted batch job 31", "", 0)])
    handler = SlurmSubmitHandler(slurm_config, scheduler=SlurmScheduler(slurm_config, cmd_shell))

    def fail(*args, **kwargs):
        raise OSError("Read-only file system")

    monkeypatch.setattr(Path, "write_text", fail)
    status, _ = handler.handle(encode(three_containers(make_request)))

    assert status == 500
    assert cmd_shell.commands[1] == "/usr/bin/scancel 31"
    assert POD_UID not in handler.store


def test_failed_cancel_still_cleans_up(
    slurm_config: SlurmSidecarConfig, make_request, files_path: Path, caplog: pytest.LogCaptureFixture
):
    cmd_shell = MockCommandShell([("garbage", "", 0), ("", "scancel: error: access denied", 1)])
    handler = SlurmSubmitHandler(slurm_config, scheduler=SlurmScheduler(slurm_config, cmd_shell))

    status, _ = handler.handle(encode(three_containers(make_request)))

    assert status == 500
    assert f"Failed to cancel the job of pod {POD_UID}" in caplog.text
    assert not files_path.exists()


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b"{}",
        b'{"pod": {"metadata": {"name": "p", "uid": "u"}, "spec": {"containers": []}}}',
    ],
)
def test_malformed_request(submit_handler: SlurmSubmitHandler, cmd_shell: MockCommandShell, body: bytes):
    status, content = submit_handler.handle(body)

    assert (status, content) == (500, GENERIC_ERROR_MESSAGE)
    assert cmd_shell.commands == []
    assert submit_handler.last_trace is not None
    assert submit_handler.last_trace.stages == []


def test_same_pod_submitted_twice(slurm_config: SlurmSidecarConfig, make_request, files_path: Path):
    cmd_shell = MockCommandShell([("Submitted batch job 100\n", "", 0), ("Submitted batch job 200\n", "", 0)])
    handler = SlurmSubmitHandler(slurm_config, scheduler=SlurmScheduler(slurm_config, cmd_shell))
    body = encode(three_containers(make_request))

    first = handler.handle(body)
    second = handler.handle(body)

    assert first[0] == 200
    assert json.loads(first[1])["PodJID"] == "100"
    assert second == (500, GENERIC_ERROR_MESSAGE)
    assert len(cmd_shell.commands) == 1
    assert handler.store.snapshot() == {POD_UID: "100"}
    assert (files_path / JOB_ID_FILE_NAME).read_text() == "100"
    assert (files_path / "job.sh").exists()
    assert handler.last_trace is not None
    assert handler.last_trace.stages == [SubmissionStage.RECEIVED]


def test_duplicate_rejected_before_processing(slurm_config: SlurmSidecarConfig, make_request):
    store = JobStore()
    store.insert_if_absent(POD_UID, "100")
    cmd_shell = MockCommandShell()
    handler = SlurmSubmitHandler(slurm_config, store=store, scheduler=SlurmScheduler(slurm_config, cmd_shell))

    with pytest.raises(SubmissionFailed) as excinfo:
        handler.submit(RetrievedPodData.model_validate(three_containers(make_request)))

    assert excinfo.value.stage is SubmissionStage.RUNTIME_SELECTED
    assert isinstance(excinfo.value.cause, DuplicatePodError)
    assert excinfo.value.cause.job_id == "100"
    assert cmd_shell.commands == []


class ConcurrentSubmitScheduler(RecordingScheduler):
    """Another submission of the same pod records its job while sbatch is running."""

    def __init__(self, config: SlurmSidecarConfig, cmd_shell: MockCommandShell, store: JobStore):
        super().__init__(config, cmd_shell)
        self.store = store

    def submit(self, script_path: Path) -> str:
        self.store.insert_if_absent(POD_UID, "100")
        return super().submit(script_path)


def test_concurrent_duplicate_cancels_own_job(slurm_config: SlurmSidecarConfig, make_request, files_path: Path):
    store = JobStore()
    cmd_shell = MockCommandShell([("Submitted batch job 200\n", "", 0)])
    scheduler = ConcurrentSubmitScheduler(slurm_config, cmd_shell, store)
    handler = SlurmSubmitHandler(slurm_config, store=store, scheduler=scheduler)

    with pytest.raises(SubmissionFailed) as excinfo:
        handler.submit(RetrievedPodData.model_validate(three_containers(make_request)))

    assert excinfo.value.stage is SubmissionStage.JOB_RECORDED
    assert isinstance(excinfo.value.cause, DuplicatePodError)
    assert scheduler.calls == ["cancel 200"]
    assert cmd_shell.commands[1] == "/usr/bin/scancel 200"
    assert store.snapshot() == {POD_UID: "100"}
    assert files_path.exists()


def test_unrepresentable_limit_rejected(submit_handler: SlurmSubmitHandler, cmd_shell: MockCommandShell, make_request):
    request = make_request([make_container("a", memory="1Mi"), make_container("b", cpu="1e400")])

    status, body = submit_handler.handle(encode(request))

    assert (status, body) == (500, GENERIC_ERROR_MESSAGE)
    assert cmd_shell.commands == []
    assert submit_handler.last_trace is not None
    assert submit_handler.last_trace.stages == []


def test_limit_aggregation_failure_cleans_up(
    submit_handler: SlurmSubmitHandler, make_request, files_path: Path, monkeypatch: pytest.MonkeyPatch
):
    def fail(cpu):
        raise OverflowError("cannot convert float infinity to integer")

    monkeypatch.setattr(ResourceLimitAggregator, "round_cpu", staticmethod(fail))
    files_path.mkdir(parents=True)

    with pytest.raises(SubmissionFailed) as excinfo:
        submit_handler.submit(RetrievedPodData.model_validate(three_containers(make_request)))

    assert excinfo.value.stage is SubmissionStage.PER_CONTAINER_PROCESSING
    assert excinfo.value.cause.collaborator == "limits"
    assert not files_path.exists()


def test_unexpected_container_error_cleans_up(
    submit_handler: SlurmSubmitHandler,
    cmd_shell: MockCommandShell,
    make_request,
    files_path: Path,
    monkeypatch: pytest.MonkeyPatch,
):
    def fail(*args):
        raise RuntimeError("boom")

    monkeypatch.setattr(ContainerRuntime, "assemble", fail)
    files_path.mkdir(parents=True)
    (files_path / "app_envfile.properties").write_text("A=1\n")

    status, body = submit_handler.handle(encode(three_containers(make_request)))

    assert (status, body) == (500, GENERIC_ERROR_MESSAGE)
    assert submit_handler.last_trace is not None
    assert submit_handler.last_trace.stage is SubmissionStage.PER_CONTAINER_PROCESSING
    assert cmd_shell.commands == []
    assert not files_path.exists()

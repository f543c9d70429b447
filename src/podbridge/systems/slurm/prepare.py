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

"""Per-container preparation steps: volume mounts, environment files and image references."""

import base64
import binascii
import logging
import re
import shlex
from pathlib import Path
from typing import Dict, List, Optional

from podbridge._core.container_runtime import RuntimeVariant
from podbridge._core.exceptions import CollaboratorError
from podbridge.models.pod import Container, ObjectMeta, RetrievedPodData, Volume, VolumeMount

from .slurm_config import SlurmSidecarConfig

IMAGE_ROOT_ANNOTATION = "slurm-job.vk.io/image-root"

_IMAGE_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def _write_items(target_dir: Path, data: Dict[str, bytes], items: List) -> None:
    target_dir.mkdir(parents=True, exist_ok=True)
    mapping = {item.key: item.path for item in items} if items else {key: key for key in data}
    for key, rel_path in mapping.items():
        if key not in data:
            logging.warning(f"Key '{key}' not found in volume data for {target_dir.name}")
            continue
        path = target_dir / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data[key])


def _config_map_data(pod_data: RetrievedPodData, container: Container, name: str) -> Optional[Dict[str, bytes]]:
    retrieved = pod_data.retrieved_for(container.name)
    if retrieved is None:
        return None
    for config_map in retrieved.config_maps:
        if config_map.name == name:
            return {key: value.encode() for key, value in config_map.data.items()}
    return None


def _secret_data(pod_data: RetrievedPodData, container: Container, name: str) -> Optional[Dict[str, bytes]]:
    retrieved = pod_data.retrieved_for(container.name)
    if retrieved is None:
        return None
    for secret in retrieved.secrets:
        if secret.name != name:
            continue
        data = {key: value.encode() for key, value in secret.string_data.items()}
        for key, value in secret.data.items():
            try:
                data[key] = base64.b64decode(value, validate=True)
            except binascii.Error as e:
                raise CollaboratorError("mounts", f"Secret '{name}' key '{key}' is not valid base64") from e
        return data
    return None


def _export_volume(path: Path, data: Optional[Dict[str, bytes]], items: List, source: str) -> None:
    if data is None:
        logging.warning(f"{source} for volume '{path.name}' was not provided, mounting empty dir")
        data = {}
    _write_items(path, data, items)


def _volume_source(
    config: SlurmSidecarConfig, pod_data: RetrievedPodData, container: Container, volume: Volume, files_path: Path
) -> Optional[Path]:
    if volume.host_path is not None:
        return Path(volume.host_path.path)

    if volume.empty_dir is not None:
        path = files_path / "emptyDirs" / volume.name
        path.mkdir(parents=True, exist_ok=True)
        return path

    path = files_path / volume.name
    if volume.config_map is not None:
        if config.export_pod_data:
            data = _config_map_data(pod_data, container, volume.config_map.name)
            _export_volume(path, data, volume.config_map.items, f"ConfigMap '{volume.config_map.name}'")
        return path

    if volume.secret is not None:
        if config.export_pod_data:
            data = _secret_data(pod_data, container, volume.secret.secret_name)
            _export_volume(path, data, volume.secret.items, f"Secret '{volume.secret.secret_name}'")
        return path

    logging.debug(f"Volume '{volume.name}' has no supported source, skipping")
    return None


def _bind_entry(source: Path, mount: VolumeMount) -> str:
    if mount.sub_path:
        source = source / mount.sub_path
    entry = f"{source.absolute()}:{mount.mount_path}"
    if mount.read_only:
        entry += ":ro"
    return entry


def prepare_mounts(
    config: SlurmSidecarConfig, pod_data: RetrievedPodData, container: Container, files_path: Path
) -> str:
    """
    Create the working directory, materialize the container volumes and return the runtime mount fragment.

    Args:
        config (SlurmSidecarConfig): Sidecar configuration.
        pod_data (RetrievedPodData): The submission request.
        container (Container): Container whose mounts are prepared.
        files_path (Path): Working directory of the pod.

    Returns:
        str: ``--bind a:b[:ro],...`` for Singularity, ``--mount a:b[:ro] ...`` for Enroot, empty if no mounts.

    Raises:
        CollaboratorError: If a mount references an unknown volume or the files cannot be written.
    """
    volumes = {volume.name: volume for volume in pod_data.pod.spec.volumes}
    entries: List[str] = []
    try:
        files_path.mkdir(parents=True, exist_ok=True)
        for mount in container.volume_mounts:
            volume = volumes.get(mount.name)
            if volume is None:
                raise CollaboratorError(
                    "mounts", f"Container '{container.name}' mounts unknown volume '{mount.name}'"
                )
            source = _volume_source(config, pod_data, container, volume, files_path)
            if source is not None:
                entries.append(_bind_entry(source, mount))
    except OSError as e:
        raise CollaboratorError("mounts", f"Failed to prepare mounts for container '{container.name}': {e}") from e

    if not entries:
        return ""
    if RuntimeVariant(config.container_runtime) == RuntimeVariant.ENROOT:
        return " ".join(f"--mount {entry}" for entry in entries)
    return "--bind " + ",".join(entries)


def envfile_path(files_path: Path, container: Container) -> Path:
    return files_path / f"{container.name}_envfile.properties"


def prepare_envs(
    config: SlurmSidecarConfig, pod_data: RetrievedPodData, container: Container, files_path: Path
) -> List[str]:
    """
    Write the container environment file and return the runtime environment tokens.

    Failures are logged and yield no tokens, the container then starts with the runtime defaults.
    """
    if not container.env:
        return []

    env_file = envfile_path(files_path, container)
    try:
        with env_file.open("w") as f:
            for var in container.env:
                f.write(f"{var.name}={shlex.quote(var.value)}\n")
    except OSError as e:
        logging.error(f"Failed to write environment file {env_file} for pod {pod_data.pod.uid}: {e}")
        return []

    if RuntimeVariant(config.container_runtime) == RuntimeVariant.ENROOT:
        tokens: List[str] = []
        for var in container.env:
            tokens.extend(["--env", shlex.quote(f"{var.name}={var.value}")])
        return tokens
    return ["--env-file", str(env_file.absolute())]


def prepare_image(config: SlurmSidecarConfig, metadata: ObjectMeta, image: str) -> str:
    """Resolve an image reference: absolute paths and references with a scheme are kept, others get a prefix."""
    if image.startswith("/") or _IMAGE_SCHEME_RE.match(image):
        return image

    prefix = metadata.annotations.get(IMAGE_ROOT_ANNOTATION, config.image_prefix)
    return f"{prefix}{image}"

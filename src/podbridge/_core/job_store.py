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

import threading
from typing import Dict, Optional


class JobStore:
    """
    Thread-safe mapping of pod UIDs to scheduler job IDs.

    One entry is created per successful submission. Entries are removed by cleanup only.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: Dict[str, str] = {}

    def insert_if_absent(self, pod_uid: str, job_id: str) -> bool:
        """
        Record a job for a pod unless the pod already has one.

        Returns:
            bool: True if the entry was created, False if the pod was already tracked.
        """
        with self._lock:
            if pod_uid in self._jobs:
                return False
            self._jobs[pod_uid] = job_id
            return True

    def get(self, pod_uid: str) -> Optional[str]:
        with self._lock:
            return self._jobs.get(pod_uid)

    def remove(self, pod_uid: str) -> Optional[str]:
        with self._lock:
            return self._jobs.pop(pod_uid, None)

    def remove_if(self, pod_uid: str, job_id: str) -> bool:
        """Remove the entry of a pod only if it still points at the given job."""
        with self._lock:
            if self._jobs.get(pod_uid) != job_id:
                return False
            del self._jobs[pod_uid]
            return True

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._jobs)

    def __contains__(self, pod_uid: object) -> bool:
        with self._lock:
            return pod_uid in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

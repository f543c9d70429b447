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

"""HTTP surface of the sidecar."""

from fastapi import FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool

from podbridge.systems.slurm import SlurmSubmitHandler


def create_app(handler: SlurmSubmitHandler) -> FastAPI:
    """
    Build the FastAPI application serving submissions through ``handler``.

    Submissions block on scheduler commands and run in the thread pool, concurrent requests only share the job
    store of the handler.
    """
    app = FastAPI(title="podbridge", description="Kubernetes pod to Slurm job sidecar")
    app.state.handler = handler

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "runtime": handler.config.container_runtime, "jobs": len(handler.store)}

    @app.post("/create")
    async def create(request: Request) -> Response:
        body = await request.body()
        status_code, content = await run_in_threadpool(handler.handle, body)
        media_type = "application/json" if status_code == 200 else "text/plain"
        return Response(content=content, status_code=status_code, media_type=media_type)

    return app


__all__ = ["create_app"]

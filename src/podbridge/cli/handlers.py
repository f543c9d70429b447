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

import argparse
import logging

import click

from podbridge._core.exceptions import SidecarConfigParsingError, UnsupportedRuntimeError
from podbridge.runtimes import create_runtime
from podbridge.systems.slurm import SlurmSubmitHandler, load_config


def handle_verify_config(args: argparse.Namespace) -> int:
    """
    Verify that the sidecar config loads and names a supported container runtime.

    Args:
        args (argparse.Namespace): The parsed command-line arguments.
    """
    try:
        config = load_config(args.config)
        create_runtime(config.container_runtime, config)
    except SidecarConfigParsingError:
        return 1
    except UnsupportedRuntimeError as e:
        logging.error(str(e))
        return 1

    logging.info(f"Config {args.config} is valid, container runtime: {config.container_runtime}")
    return 0


def handle_submit(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except SidecarConfigParsingError:
        return 1

    handler = SlurmSubmitHandler(config)
    status_code, content = handler.handle(args.pod_json.read_bytes())
    click.echo(content.decode())
    return 0 if status_code == 200 else 1


def handle_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from podbridge.api import create_app

    try:
        config = load_config(args.config)
    except SidecarConfigParsingError:
        return 1

    app = create_app(SlurmSubmitHandler(config))
    if config.socket:
        logging.info(f"Serving on unix socket {config.socket}")
        uvicorn.run(app, uds=config.socket, log_config=None)
    else:
        port = args.port or config.sidecar_port
        logging.info(f"Serving on {args.host}:{port}")
        uvicorn.run(app, host=args.host, port=port, log_config=None)
    return 0

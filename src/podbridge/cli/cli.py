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
import logging.config
from pathlib import Path

import click

from .handlers import handle_serve, handle_submit, handle_verify_config


def setup_logging(log_file: str, log_level: str) -> None:
    """
    Configure logging for the application.

    Args:
        log_level (str): The logging level (e.g., DEBUG, INFO).
        log_file (str): The name of the log file.
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    LOGGING_CONFIG = {
        "version": 1,
        "disable_existing_loggers": True,
        "formatters": {
            "standard": {"format": "%(asctime)s - %(levelname)s - %(message)s"},
            "short": {"format": "[%(levelname)s] %(message)s"},
        },
        "handlers": {
            "default": {
                "level": log_level.upper(),
                "formatter": "short",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
            "debug_file": {
                "level": "DEBUG",
                "formatter": "standard",
                "class": "logging.FileHandler",
                "filename": log_file,
                "mode": "a",
            },
        },
        "loggers": {
            "": {
                "handlers": ["default", "debug_file"],
                "level": "DEBUG",
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["debug_file"],
                "propagate": False,
            },
        },
    }
    logging.config.dictConfig(LOGGING_CONFIG)


config_opt = click.option(
    "--config",
    "config_path",
    required=True,
    envvar="SLURMCONFIGPATH",
    type=click.Path(exists=True, resolve_path=True, path_type=Path, dir_okay=False),
    help="Sidecar config path. Defaults to $SLURMCONFIGPATH.",
)


@click.group(name="podbridge", context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--log-file", default="podbridge.log", help="Log file path for storing verbose output.")
@click.option("--log-level", default="INFO", help="Log level for standard output.")
@click.version_option(prog_name="podbridge")
def main(log_file, log_level):
    """podbridge submits Kubernetes pods as Slurm batch jobs."""
    setup_logging(log_file, log_level)


@main.command()
@config_opt
@click.option("--host", default="127.0.0.1", help="Address to listen on.")
@click.option("--port", type=int, default=None, help="Port to listen on, overrides the config.")
def serve(config_path: Path, host: str, port: int):
    """Serve the submission API over HTTP."""
    args = argparse.Namespace(config=config_path, host=host, port=port)
    exit(handle_serve(args))


@main.command()
@config_opt
@click.argument(
    "pod_json",
    type=click.Path(exists=True, resolve_path=True, path_type=Path, dir_okay=False),
)
def submit(config_path: Path, pod_json: Path):
    """Submit a single pod description read from POD_JSON."""
    args = argparse.Namespace(config=config_path, pod_json=pod_json)
    exit(handle_submit(args))


@main.command()
@click.argument(
    "config_path",
    type=click.Path(exists=True, resolve_path=True, path_type=Path, dir_okay=False),
)
def verify_config(config_path: Path):
    """Verify the sidecar configuration TOML file."""
    args = argparse.Namespace(config=config_path)
    exit(handle_verify_config(args))

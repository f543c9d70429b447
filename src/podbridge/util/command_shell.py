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
import os
import subprocess
from dataclasses import dataclass

# Exit status bash uses when the command itself cannot be found.
COMMAND_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one shell command."""

    command: str
    stdout: str
    stderr: str
    returncode: int

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def not_found(self) -> bool:
        return self.returncode == COMMAND_NOT_FOUND


class CommandShell:
    """
    Runs Slurm command lines through a login-style shell and collects their output.

    Attributes
        executable (str): The path to the shell executable used for running commands.
    """

    def __init__(self, executable: str = "/bin/bash"):
        """
        Initialize the CommandShell with a shell executable.

        Args:
            executable (str): The shell executable path. Defaults to "/bin/bash".

        Raises:
            FileNotFoundError: If the specified executable does not exist.
        """
        if not os.path.exists(executable):
            raise FileNotFoundError(f"Executable '{executable}' not found.")
        self.executable = executable

    def execute(self, command: str) -> CommandResult:
        """
        Run a command to completion.

        A missing program is not raised, the shell reports it with exit code 127 (see ``CommandResult.not_found``).

        Args:
            command (str): The command line, interpreted by the shell.

        Returns:
            CommandResult: Captured output and exit code.

        Raises:
            OSError: If the shell itself cannot be started.
        """
        logging.debug(f"Executing command: {command}")
        process = self._spawn(command)
        stdout, stderr = process.communicate()
        result = CommandResult(command, stdout, stderr, process.returncode)
        if result.not_found:
            logging.debug(f"Command not found: {stderr.strip()}")
        return result

    def _spawn(self, command: str) -> subprocess.Popen:
        return subprocess.Popen(
            command,
            shell=True,
            executable=self.executable,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )

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

import re

from podbridge._core.exceptions import FormatError

MEM_UNITS = {"": 1, "K": 1024, "M": 1024**2, "G": 1024**3}
MAX_MEM_BYTES = 2**63 - 1

_MEM_RE = re.compile(r"(\d+)([KMG]?)", re.ASCII)


def parse_mem(value: str) -> int:
    """
    Convert a size token like ``512``, ``64K``, ``2M`` or ``1G`` into bytes.

    Units are powers of 1024. The result must fit into a signed 64-bit integer.

    Args:
        value (str): The size token.

    Returns:
        int: The number of bytes.

    Raises:
        FormatError: If the token does not match ``<digits><optional K|M|G>``.
    """
    match = _MEM_RE.fullmatch(value)
    if not match:
        raise FormatError(f"Invalid memory format: {value}")

    size = int(match.group(1)) * MEM_UNITS[match.group(2)]
    if size > MAX_MEM_BYTES:
        raise FormatError(f"Memory size out of range: {value}")
    return size


def format_mem(size: int) -> str:
    """Format a byte count with the largest unit that divides it exactly."""
    if size < 0:
        raise ValueError(f"Memory size must not be negative: {size}")

    for unit in ("G", "M", "K"):
        factor = MEM_UNITS[unit]
        if size and size % factor == 0:
            return f"{size // factor}{unit}"
    return str(size)

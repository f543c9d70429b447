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

from .prepare import prepare_envs, prepare_image, prepare_mounts
from .slurm_config import SlurmSidecarConfig, load_config
from .slurm_scheduler import SlurmScheduler
from .slurm_script import produce_slurm_script, render_slurm_script
from .submit_handler import GENERIC_ERROR_MESSAGE, SlurmSubmitHandler

__all__ = [
    "GENERIC_ERROR_MESSAGE",
    "SlurmScheduler",
    "SlurmSidecarConfig",
    "SlurmSubmitHandler",
    "load_config",
    "prepare_envs",
    "prepare_image",
    "prepare_mounts",
    "produce_slurm_script",
    "render_slurm_script",
]

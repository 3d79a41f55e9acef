# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0
"""
Configuration loading.

Settings live in a YAML file (see configs/salvo.yaml). Values missing from
the file fall back to DEFAULT_CONFIG.
"""

import copy
import logging
from pathlib import Path
from typing import Dict, Optional

import yaml


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "configs" / "salvo.yaml"

DEFAULT_CONFIG: Dict = {
    'polling': {
        'enabled': True,
        'interval_ms': 3000,
    },
    'ai': {
        'seed': None,
        'min_delay_s': 1.0,
        'max_delay_s': 2.0,
    },
    'logging': {
        'level': 'INFO',
    },
}


def _merge(base: Dict, override: Dict) -> Dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict:
    """
    Load configuration from a YAML file over the defaults.

    Args:
        config_path: Path to a YAML file. When omitted the bundled
            configs/salvo.yaml is used if present, else the defaults.

    Returns:
        Configuration dictionary.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        if config_path:
            raise FileNotFoundError(f"Config file not found: {path}")
        return copy.deepcopy(DEFAULT_CONFIG)

    with open(path, 'r') as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config file {path} must contain a mapping")

    logger.debug(f"Loaded configuration from {path}")
    return _merge(DEFAULT_CONFIG, loaded)

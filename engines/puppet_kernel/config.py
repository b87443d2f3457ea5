"""Runtime configuration helpers for the puppet kernel."""
from __future__ import annotations

import os
from typing import Any, Dict, Optional

from engines.puppet_kernel.schemas import DancerConfig

ENV_RANDOM_SEED = "PUPPET_RANDOM_SEED"
ENV_NOISE_OCTAVES = "PUPPET_NOISE_OCTAVES"
ENV_STEP_FREQUENCY = "PUPPET_STEP_FREQUENCY"


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def _int_env(name: str) -> Optional[int]:
    raw = _get_env(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _float_env(name: str) -> Optional[float]:
    raw = _get_env(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def get_random_seed() -> Optional[int]:
    return _int_env(ENV_RANDOM_SEED)


def get_noise_octaves() -> Optional[int]:
    value = _int_env(ENV_NOISE_OCTAVES)
    if value is None or not 1 <= value <= 8:
        return None
    return value


def get_step_frequency() -> Optional[float]:
    value = _float_env(ENV_STEP_FREQUENCY)
    if value is None or value < 0:
        return None
    return value


def config_snapshot() -> Dict[str, Any]:
    """Environment overrides currently in effect (None = model default)."""
    return {
        "random_seed": get_random_seed(),
        "noise_octaves": get_noise_octaves(),
        "step_frequency": get_step_frequency(),
    }


def default_dancer_config(**overrides: Any) -> DancerConfig:
    """
    Build a DancerConfig from model defaults, then environment overrides,
    then explicit keyword overrides.
    """
    values = {k: v for k, v in config_snapshot().items() if v is not None}
    values.update(overrides)
    return DancerConfig(**values)

"""
Configuration loading for mission parameters.

Reads config/mission_params.yaml and merges it over built-in defaults.
"""

import copy
import logging
from pathlib import Path
from typing import Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent.parent / 'config' / 'mission_params.yaml'

DEFAULTS = {
    'mission': {
        'base_lat': 40.785091,
        'base_lng': -73.968285,
        'hospital_lat': 40.789125,
        'hospital_lng': -73.954605,
        'patient_radius_m': 1500.0,
        'arrival_threshold_m': 25.0,
        'completion_delay': 1.0,
        'context_hint': 'Heavy Congestion',
        'threaded': True,
    },
    'speed': {
        'patient_base_kmh': 50,
        'hospital_base_kmh': 80,
        'jitter_kmh': 20,
    },
    'simulation': {
        'tick_interval': 0.5,
        'time_scale': 10.0,
    },
    'signals': {
        'interval': 3.0,
        'weights': {'RED': 0.2, 'YELLOW': 0.2, 'GREEN': 0.6},
    },
    'routing': {
        'provider': 'osrm',
        'base_url': 'https://router.project-osrm.org',
        'profile': 'driving',
        'timeout': 10.0,
        'retries': 1,
        'average_speed_kmh': 40.0,
        'fallback_points': 20,
    },
    'analysis': {
        'provider': 'template',
        'endpoint': None,
        'api_key': None,
        'timeout': 15.0,
    },
    'telemetry': {
        'enabled': False,
        'bind': 'tcp://*:5560',
    },
}


def _merge(base: dict, override: dict) -> dict:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def validate_config(config: dict) -> dict:
    """
    Check cross-field constraints.

    Raises:
        ValueError: If a constraint is violated
    """
    speed = config.get('speed', {})
    if speed.get('hospital_base_kmh', 0) <= speed.get('patient_base_kmh', 0):
        raise ValueError("speed.hospital_base_kmh must exceed speed.patient_base_kmh")
    if speed.get('jitter_kmh', 1) < 1:
        raise ValueError("speed.jitter_kmh must be at least 1")

    mission = config.get('mission', {})
    if mission.get('arrival_threshold_m', 0) <= 0:
        raise ValueError("mission.arrival_threshold_m must be positive")
    if mission.get('patient_radius_m', 0) < 0:
        raise ValueError("mission.patient_radius_m must not be negative")

    return config


def build_config(overrides: Optional[dict] = None) -> dict:
    """Defaults merged with in-memory overrides, validated."""
    return validate_config(_merge(DEFAULTS, overrides or {}))


def load_config(path: Optional[Union[str, Path]] = None) -> dict:
    """
    Load YAML configuration file merged over defaults.

    Args:
        path: Path to mission_params.yaml (repository default if omitted)

    Returns:
        Configuration dictionary
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH

    try:
        with open(config_path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Config file not found: {config_path} - using defaults")
        loaded = {}

    logger.info(f"Configuration loaded from {config_path}")
    return build_config(loaded)

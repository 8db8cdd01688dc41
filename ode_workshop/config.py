import copy
import os

import yaml

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_CONFIG_PATH = os.path.join(PACKAGE_DIR, "config.yaml")


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(path: str = None) -> dict:
    """
    Load the workshop config. A user file only needs the keys it overrides,
    everything else comes from the packaged config.yaml
    """
    with open(DEFAULT_CONFIG_PATH, "r") as f:
        config = yaml.safe_load(f)
    if path is None:
        return config
    with open(path, "r") as f:
        user_config = yaml.safe_load(f) or {}
    assert isinstance(user_config, dict), f"config root must be a mapping, got {type(user_config)}"
    unknown_keys = set(user_config.keys()) - set(config.keys())
    if len(unknown_keys) > 0:
        raise ValueError(f"Unknown config sections {sorted(unknown_keys)}")
    return _merge(config, user_config)


def lesson_config(config: dict, lesson_name: str) -> dict:
    return config.get("lessons", {}).get(lesson_name, None) or {}

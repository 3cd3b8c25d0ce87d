import copy
import json
import logging
import os
from typing import Any, Dict, Optional

_DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "exercise_config.json")
_DEFAULT_CONFIG: Optional[Dict[str, Any]] = None


def load_exercise_config(config_path: str = None) -> Dict[str, Any]:
    """Load exercise config from JSON file."""
    if config_path is None:
        config_path = _DEFAULT_CONFIG_PATH
    with open(config_path, "r") as f:
        return json.load(f)


def _cached_config() -> Dict[str, Any]:
    global _DEFAULT_CONFIG
    if _DEFAULT_CONFIG is None:
        _DEFAULT_CONFIG = load_exercise_config()
    return _DEFAULT_CONFIG


def get_default_config() -> Dict[str, Any]:
    """Return a private copy of the packaged config, loading it once."""
    return copy.deepcopy(_cached_config())


def get_shared_config() -> Dict[str, Any]:
    """The cached packaged config itself, for read-only use on hot paths."""
    return _cached_config()


def merge_thresholds(defaults: Dict[str, Any], overrides: Optional[Dict[str, Any]], owner: str) -> Dict[str, Any]:
    """
    Overlay user supplied values on a defaults dict.

    Args:
        defaults: Values from the config file
        overrides: Caller supplied values, may be None
        owner: Name used in the error message

    Returns:
        New dict with overrides applied

    Raises:
        ValueError: If an override names a key the defaults do not define
    """
    merged = dict(defaults)
    if not overrides:
        return merged
    unknown = sorted(set(overrides) - set(defaults))
    if unknown:
        raise ValueError(
            f"Unknown threshold(s) for {owner}: {', '.join(unknown)}. "
            f"Valid keys: {', '.join(sorted(defaults))}"
        )
    merged.update(overrides)
    return merged


def get_logger(name: str) -> logging.Logger:
    """Named logger with a single stream handler attached."""
    logger = logging.getLogger(name)
    if not logger.hasHandlers():
        handler = logging.StreamHandler()
        formatter = logging.Formatter('%(asctime)s %(levelname)s %(message)s')
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger

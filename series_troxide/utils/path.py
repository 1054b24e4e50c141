"""
Utilities for resolving the platform directories used by the application and
for parsing user-supplied ranges.
"""

import os
import re
from pathlib import Path

APP_NAME = "series-troxide"


def _home_based(env_var: str, fallback: str) -> Path | None:
    """
    Resolves a base directory from an environment variable, falling back to a
    home-relative default. Returns None when no home directory can be found.
    """
    try:
        return Path(os.getenv(env_var) or fallback).expanduser()
    except RuntimeError:
        return None


def get_config_dir() -> Path | None:
    if os.name == "nt":
        base_dir = _home_based("APPDATA", "~\\AppData\\Roaming")
    else:
        base_dir = _home_based("XDG_CONFIG_HOME", "~/.config")
    return base_dir / APP_NAME if base_dir else None


def get_data_dir() -> Path | None:
    if os.name == "nt":
        base_dir = _home_based("APPDATA", "~\\AppData\\Roaming")
    else:
        base_dir = _home_based("XDG_DATA_HOME", "~/.local/share")
    return base_dir / APP_NAME if base_dir else None


def get_cache_dir() -> Path | None:
    if os.name == "nt":
        base_dir = _home_based("LOCALAPPDATA", "~\\AppData\\Local")
        return base_dir / APP_NAME / "cache" if base_dir else None
    base_dir = _home_based("XDG_CACHE_HOME", "~/.cache")
    return base_dir / APP_NAME if base_dir else None


def parse_number_range(value: str) -> range:
    """
    Parses a single number ('5') or an inclusive range ('3-7') into a range.

    Raises:
        ValueError: If the value is not a positive number or a valid range.
    """
    match = re.fullmatch(r"\s*(\d+)\s*(?:-\s*(\d+)\s*)?", value)
    if not match:
        raise ValueError(f"'{value}' is not a number or a range like '1-10'.")
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else start
    if end < start:
        raise ValueError(f"Range '{value}' ends before it starts.")
    return range(start, end + 1)

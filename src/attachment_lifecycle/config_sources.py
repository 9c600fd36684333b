"""Helpers for reading and merging configuration sources."""

from __future__ import annotations

import copy
import logging
import pathlib
from typing import Any

import yaml

logger = logging.getLogger(__name__)


def _merge_dicts_inplace(
    base_dict: dict[str, Any],
    merge_dict: dict[str, Any],
) -> None:
    for key, value in merge_dict.items():
        if isinstance(value, dict) and isinstance(base_dict.get(key), dict):
            _merge_dicts_inplace(base_dict[key], value)
        else:
            base_dict[key] = copy.deepcopy(value)


def deep_merge_dicts(
    base_dict: dict[str, Any],
    merge_dict: dict[str, Any],
) -> dict[str, Any]:
    """Deeply merges merge_dict into base_dict.

    Args:
        base_dict: The base dictionary to merge into
        merge_dict: The dictionary to merge from (values take precedence)

    Returns:
        A new dictionary with deeply merged values
    """
    result = copy.deepcopy(base_dict)
    _merge_dicts_inplace(result, merge_dict)
    return result


def load_yaml_file(
    file_path: str | pathlib.Path,
) -> dict[str, Any]:
    """Load a YAML file, returning an empty dict if not found.

    Args:
        file_path: Path to the YAML file

    Returns:
        The loaded YAML content as a dictionary, or empty dict if file not found
    """
    try:
        with open(file_path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
            if isinstance(content, dict):
                return content
            if content is not None:
                logger.warning(f"{file_path} is not a valid dictionary. Ignoring.")
            return {}
    except FileNotFoundError:
        logger.info(f"{file_path} not found. Using defaults.")
        return {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing {file_path}: {e}. Using defaults.")
        return {}

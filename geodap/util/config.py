# Copyright (c) 2025 by geodap team and contributors
# Permissions are hereby granted under the terms of the MIT License:
# https://opensource.org/licenses/MIT.

import json
import os
import string
from typing import Any

import fsspec
import yaml

from geodap.constants import LOG


def merge_config(first_dict: dict, *more_dicts: dict) -> dict:
    """Deeply merge *more_dicts* into a copy of *first_dict*.
    Later dictionaries take precedence. Without *more_dicts*,
    *first_dict* is returned as is.
    """
    if not more_dicts:
        return first_dict
    merged = dict(first_dict)
    for d in more_dicts:
        for k, v in d.items():
            if isinstance(merged.get(k), dict) and isinstance(v, dict):
                v = merge_config(merged[k], v)
            merged[k] = v
    return merged


def load_configs(*config_paths: str) -> dict[str, Any]:
    """Load and merge the mappings of the YAML or JSON files
    or URLs *config_paths*, in order.
    """
    return merge_config(*map(load_json_or_yaml_config, config_paths))


def load_json_or_yaml_config(config_path: str) -> dict[str, Any]:
    """Load a mapping from the YAML or JSON file or URL *config_path*.
    An empty document gives an empty mapping.
    """
    config = load_json_or_yaml(config_path)
    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(
            f"Invalid configuration format in {config_path!r}: dictionary expected"
        )
    return config


def load_json_or_yaml(config_path: str) -> Any:
    """Load any YAML or JSON document from file or URL *config_path*.
    Files ending with ``.json`` are parsed as JSON.

    Occurrences of ``$NAME`` or ``${NAME}`` are replaced by the
    value of environment variable ``NAME``, if it exists.

    Raises:
        ValueError: if the document cannot be read or parsed.
    """
    try:
        with fsspec.open(config_path, mode="r") as fp:
            text = fp.read()
    except FileNotFoundError as e:
        raise ValueError(f"Cannot find configuration {config_path!r}") from e
    except OSError as e:
        raise ValueError(f"Cannot load configuration from {config_path!r}: {e}") from e
    text = string.Template(text).safe_substitute(os.environ)
    try:
        if config_path.endswith(".json"):
            config = json.loads(text)
        else:
            config = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"YAML in {config_path!r} is invalid: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"JSON in {config_path!r} is invalid: {e}") from e
    LOG.info(f"Configuration loaded: {config_path}")
    return config

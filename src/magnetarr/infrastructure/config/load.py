"""Layered configuration loading: defaults < YAML < environment < CLI."""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

from .defaults import DEFAULT_CONFIG
from .schema import AppConfig, EnvOverrides

_SECTIONS = ("http", "logging", "stremio", "debrid")
_TOP_LEVEL = ("app_name", "environment", "indexers")

# Flat key (ENV/CLI/flat YAML) -> (section, key in section).
_FLAT_KEYS: dict[str, tuple[str, str]] = {
    "http_timeout_seconds": ("http", "timeout_seconds"),
    "http_follow_redirects": ("http", "follow_redirects"),
    "http_user_agent": ("http", "user_agent"),
    "rate_limit_requests_per_second": ("http", "rate_limit_rps"),
    "log_level": ("logging", "level"),
    "log_format": ("logging", "format"),
    "base_url": ("stremio", "base_url"),
    "addon_name": ("stremio", "addon_name"),
    "debrid_order": ("debrid", "order"),
    "premiumize_api_key": ("debrid", "premiumize_api_key"),
    "realdebrid_api_key": ("debrid", "realdebrid_api_key"),
}


def merge_layers(*layers: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge sectioned layers left to right.

    Mappings merge key by key; any other value (lists included) replaces
    what came before.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        _merge_into(merged, layer)
    return merged


def _merge_into(target: dict[str, Any], layer: Mapping[str, Any]) -> None:
    for key, value in layer.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            _merge_into(current, value)
        else:
            target[key] = deepcopy(value)


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_indexers(raw: Any) -> Any:
    """Normalize the indexer list.

    Accepts the canonical list of ``{name, base_url, enabled}`` objects,
    a ``{name: base_url}`` mapping (YAML shorthand) or a
    ``Name=URL,Name=URL`` string (``MAGNETARR_INDEXERS``).

    Raises:
        ValueError: A string entry without ``=``.
    """
    if isinstance(raw, str):
        indexers = []
        for item in _split_csv(raw):
            name, sep, url = item.partition("=")
            if not sep or not name.strip() or not url.strip():
                raise ValueError(f"indexer entry {item!r} must look like Name=URL")
            indexers.append({"name": name.strip(), "base_url": url.strip()})
        return indexers
    if isinstance(raw, Mapping):
        return [{"name": str(name), "base_url": url} for name, url in raw.items()]
    return raw


def _sectioned(layer: Mapping[str, Any]) -> dict[str, Any]:
    """Bring one layer into the sectioned shape AppConfig validates."""
    out: dict[str, Any] = {
        section: dict(layer[section])
        for section in _SECTIONS
        if isinstance(layer.get(section), Mapping)
    }
    out.update({key: layer[key] for key in _TOP_LEVEL if key in layer})

    for flat_key, (section, key) in _FLAT_KEYS.items():
        if flat_key in layer:
            out.setdefault(section, {})[key] = layer[flat_key]

    order = out.get("debrid", {}).get("order")
    if isinstance(order, str):
        out["debrid"]["order"] = _split_csv(order)
    if "indexers" in out:
        out["indexers"] = parse_indexers(out["indexers"])
    return out


def _existing(path: Path) -> Path:
    if not path.exists():
        raise FileNotFoundError(path)
    return path


def _read_yaml(path: Path) -> dict[str, Any]:
    parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError(f"Config YAML must be a mapping, got: {type(parsed)!r}")
    return parsed


def load_config(
    *,
    config_path: Path | None = None,
    dotenv_path: Path | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> AppConfig:
    """Build the validated AppConfig.

    A ``.env`` file only feeds the environment layer (variables already
    set in the process win). Only the given files are read; nothing is
    written.

    Raises:
        FileNotFoundError: ``config_path`` or ``dotenv_path`` does not exist.
        ValueError: The YAML root is not a mapping.
        pydantic.ValidationError: The merged configuration is invalid.
    """
    if dotenv_path is not None:
        load_dotenv(_existing(dotenv_path), override=False)

    layers: list[Mapping[str, Any]] = [DEFAULT_CONFIG]
    if config_path is not None:
        layers.append(_read_yaml(_existing(config_path)))
    layers.append(EnvOverrides().to_update_dict())
    layers.append(cli_overrides or {})

    merged = merge_layers(*(_sectioned(layer) for layer in layers))
    return AppConfig.model_validate(merged)

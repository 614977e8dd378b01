# src/chatdeck/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict
import yaml

from .providers.specs import known_providers


class ConfigError(ValueError):
    pass


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigError(f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is bool and not isinstance(cur, bool):
        raise ConfigError(f"'{dotted}' must be a boolean")
    if typ is str and not isinstance(cur, str):
        raise ConfigError(f"'{dotted}' must be a string")
    return cur


def normalise_provider(name: str) -> str:
    provider = str(name).lower()
    if provider not in known_providers():
        raise ConfigError(
            f"Unknown model.provider '{provider}' (expected one of {', '.join(known_providers())})."
        )
    return provider


def load_config(path: Path) -> Dict[str, Any]:
    if not path or not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text())
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"Config is empty or invalid YAML: {path}")

    # Validate required keys (no defaults here)
    _require(raw, "model.provider", str)
    _require(raw, "model.name", str)
    _require(raw, "storage.backend", str)          # 'file' or 'none'
    _require(raw, "storage.state_path", str)       # path string
    _require(raw, "search.enabled", bool)

    # Normalise enumerations
    backend = str(raw["storage"]["backend"]).lower()
    if backend not in ("file", "none"):
        raise ConfigError(f"Unknown storage.backend '{backend}' (expected 'file' or 'none').")
    raw["model"]["provider"] = normalise_provider(raw["model"]["provider"])
    raw["storage"]["backend"] = backend

    providers = raw.get("providers") or {}
    if not isinstance(providers, dict):
        raise ConfigError("'providers' must be a mapping of provider id -> settings")
    for name, settings in providers.items():
        normalise_provider(name)
        if settings is not None and not isinstance(settings, dict):
            raise ConfigError(f"'providers.{name}' must be a mapping")
    raw["providers"] = {str(k).lower(): (v or {}) for k, v in providers.items()}

    ttl = (raw.get("catalog") or {}).get("ttl_seconds", 300)
    if not isinstance(ttl, (int, float)) or isinstance(ttl, bool) or ttl < 0:
        raise ConfigError("'catalog.ttl_seconds' must be a non-negative number")

    # Leave paths as provided; resolve them later in bootstrap/composition
    return raw

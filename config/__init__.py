import tomllib
import os
import logging
from pathlib import Path
import collections.abc

logger = logging.getLogger(__name__)

# In-memory cache for the configuration
_config_cache = None
CONFIG_ENV_PREFIX = "DRASH_CONFIG__"

_CONFIG_DIR = Path(__file__).parent


def _deep_merge_dict(source, destination):
    """
    Recursively merges source dict into destination dict.
    """
    for key, value in source.items():
        if isinstance(value, collections.abc.Mapping) and key in destination and isinstance(destination[key], collections.abc.Mapping):
            destination[key] = _deep_merge_dict(value, destination[key])
        else:
            destination[key] = value
    return destination


def _coerce_env_value(raw: str):
    lowered = raw.strip().lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    if "," in raw:
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def _env_overrides() -> dict:
    """
    Builds a nested dict from DRASH_CONFIG__SECTION__KEY=value variables.
    """
    overrides: dict = {}
    for env_key, raw_value in os.environ.items():
        if not env_key.startswith(CONFIG_ENV_PREFIX):
            continue
        path = [part.lower() for part in env_key[len(CONFIG_ENV_PREFIX):].split("__") if part]
        if not path:
            continue
        node = overrides
        for part in path[:-1]:
            node = node.setdefault(part, {})
        node[path[-1]] = _coerce_env_value(raw_value)
    return overrides


def get_config(force_reload: bool = False):
    """
    Loads and merges configuration from TOML files and the environment.
    Caches the result unless force_reload is True.
    """
    global _config_cache
    if not force_reload and _config_cache is not None:
        return _config_cache

    defaults_path = _CONFIG_DIR / "defaults.toml"
    overrides_path = _CONFIG_DIR / "overrides.toml"

    config = {}
    if defaults_path.exists():
        with open(defaults_path, "rb") as f:
            config = tomllib.load(f)

    if overrides_path.exists():
        with open(overrides_path, "rb") as f:
            try:
                overrides = tomllib.load(f)
                # Overrides are merged into defaults
                config = _deep_merge_dict(overrides, config)
            except tomllib.TOMLDecodeError:
                logger.error("Could not decode overrides.toml, skipping.", exc_info=True)

    env_overrides = _env_overrides()
    if env_overrides:
        config = _deep_merge_dict(env_overrides, config)

    _config_cache = config
    return config


def load_config():
    return get_config()


def reload_config():
    return get_config(force_reload=True)


def get_config_section(path: str, default=None):
    """
    Retrieves a specific value from the configuration using a dot-separated path.
    """
    keys = path.split('.')
    value = get_config()
    for key in keys:
        if isinstance(value, dict):
            value = value.get(key)
        else:
            return default
    return value if value is not None else default


def flatten_to_env(config: dict, prefix: str = "") -> dict:
    """
    Flattens a nested config into SECTION__KEY style names (without CONFIG_ENV_PREFIX).
    """
    flattened = {}
    for key, value in config.items():
        name = f"{prefix}__{key.upper()}" if prefix else key.upper()
        if isinstance(value, collections.abc.Mapping):
            flattened.update(flatten_to_env(value, name))
        elif isinstance(value, (list, tuple)):
            flattened[name] = ",".join(str(item) for item in value)
        else:
            flattened[name] = str(value)
    return flattened

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
import logging
import os

import yaml
from dotenv import load_dotenv

from ..errors import ConfigurationError


BASE_DIR = Path(__file__).resolve().parent
USER_ENV_PATH = Path.home() / ".protoforge" / ".env"

log = logging.getLogger("relay.config")

DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TIMEOUT = 60.0


def load_yaml(path: Path) -> Dict[str, Any]:
    """Safely load a YAML file, returning an empty dict if it does not exist."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"{path} is not valid YAML: {exc}") from exc
    if data is not None and not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a YAML mapping")
    return data or {}


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries, with values from override taking precedence."""
    result: Dict[str, Any] = base.copy()
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _replace_env(value: Any) -> Any:
    """
    Replace strings of the form ${ENV_VAR} with the corresponding environment variable.
    Non-string values are returned unchanged.
    """
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        env_name = value[2:-1]
        return os.getenv(env_name, "")
    if isinstance(value, dict):
        return {k: _replace_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_replace_env(v) for v in value]
    return value


def load_user_env(path: Optional[Path] = None) -> bool:
    """Load provider API keys from the user-level env file without overriding the process env."""
    env_path = path or USER_ENV_PATH
    if not env_path.exists():
        return False
    log.debug("loading user env file %s", env_path)
    return load_dotenv(env_path, override=False)


def load_config(override_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load and merge config.yaml, local.yaml and an optional override file,
    then apply environment variable substitution.

    local.yaml is optional and overrides values from config.yaml when present.
    The override file (argument or RELAY_CONFIG env var) wins over both.
    """
    load_user_env()
    merged = load_yaml(BASE_DIR / "config.yaml")
    local_cfg = load_yaml(BASE_DIR / "local.yaml")
    if local_cfg:
        merged = deep_merge(merged, local_cfg)

    extra = override_path or os.getenv("RELAY_CONFIG")
    if extra:
        extra_path = Path(extra).expanduser()
        if not extra_path.exists():
            raise ConfigurationError(f"Config file not found: {extra_path}")
        merged = deep_merge(merged, load_yaml(extra_path))
    return _replace_env(merged)


def get_model_chain_config(cfg: Dict[str, Any]) -> Tuple[str, List[str]]:
    """Return (primary, fallbacks) model strings from the `models` section."""
    models = cfg.get("models") or {}
    primary = models.get("primary") or ""
    fallbacks = models.get("fallbacks") or []
    if isinstance(fallbacks, str):
        fallbacks = [item.strip() for item in fallbacks.split(",") if item.strip()]
    if not isinstance(fallbacks, list):
        raise ConfigurationError("models.fallbacks must be a list of 'provider/model' strings")
    return str(primary), [str(item) for item in fallbacks]


def get_provider_credentials(cfg: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Build the effective settings for every configured provider.

    Runtime-level settings (e.g. timeout) act as defaults that each
    providers.<name> block may override.
    """
    runtime = cfg.get("runtime") or {}
    shared = {"timeout": runtime.get("timeout", DEFAULT_TIMEOUT)}

    credentials: Dict[str, Dict[str, Any]] = {}
    for name, provider_cfg in (cfg.get("providers") or {}).items():
        if not isinstance(provider_cfg, dict):
            raise ConfigurationError(f"providers.{name} must be a mapping")
        merged = dict(shared)
        merged.update({k: v for k, v in provider_cfg.items() if v not in (None, "")})
        credentials[str(name).lower()] = merged
    return credentials


def get_generation_defaults(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Return max_tokens, temperature and timeout from the `runtime` section."""
    runtime = cfg.get("runtime") or {}
    try:
        return {
            "max_tokens": int(runtime.get("max_tokens", DEFAULT_MAX_TOKENS)),
            "temperature": float(runtime.get("temperature", DEFAULT_TEMPERATURE)),
            "timeout": float(runtime.get("timeout", DEFAULT_TIMEOUT)),
        }
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid runtime setting: {exc}") from exc

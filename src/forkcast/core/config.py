# config.py

import logging
import os
import yaml
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

from forkcast.limits import MAX_MESSAGE_UNITS
from forkcast.prompts import SYSTEM_PROMPT


logger = logging.getLogger("forkcast.config")


# Completion proxy configuration (used by llm.client and the chat route)
@dataclass
class ProxyConfig:
    # Upstream
    api_key: Optional[str] = None
    api_base: str = "https://api.groq.com/openai/v1"
    model: str = "llama-3.3-70b-versatile"
    max_tokens: int = 1000
    temperature: float = 0.7

    # Deadline and retries
    timeout_s: float = 30.0       # re-armed for every attempt
    max_retries: int = 2          # 3 attempts total
    backoff_ms: int = 1000        # linear: retry_number * backoff_ms

    # Request shaping
    history_window: int = 10
    max_message_chars: int = MAX_MESSAGE_UNITS  # UTF-16 code units
    system_prompt: str = field(default=SYSTEM_PROMPT, repr=False)


# Chat client configuration (used by sessions.client and scripts/chat_cli.py)
@dataclass
class ClientConfig:
    proxy_url: str = "http://localhost:8000"
    storage_path: Path = Path(".forkcast") / "local_storage.json"
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None


# Keys a YAML profile may override; the API key is environment-only
_YAML_KEYS = {
    "api_base",
    "model",
    "max_tokens",
    "temperature",
    "timeout_s",
    "max_retries",
    "backoff_ms",
    "history_window",
    "max_message_chars",
}

_ENV_KEYS = {
    "api_base": "FORKCAST_API_BASE",
    "model": "FORKCAST_MODEL",
    "max_tokens": "FORKCAST_MAX_TOKENS",
    "temperature": "FORKCAST_TEMPERATURE",
    "timeout_s": "FORKCAST_TIMEOUT",
    "max_retries": "FORKCAST_MAX_RETRIES",
    "backoff_ms": "FORKCAST_BACKOFF_MS",
    "history_window": "FORKCAST_HISTORY_WINDOW",
}

_INT_KEYS = {"max_tokens", "max_retries", "backoff_ms", "history_window", "max_message_chars"}
_FLOAT_KEYS = {"temperature", "timeout_s"}


def _coerce(key: str, value: object) -> object:
    if key in _INT_KEYS:
        return int(value)  # type: ignore[arg-type]
    if key in _FLOAT_KEYS:
        return float(value)  # type: ignore[arg-type]
    return str(value)


def load_config(profile: str = "default", config_dir: Path | None = None) -> ProxyConfig:
    """Load the proxy config with YAML and env overrides.

    Order: dataclass defaults, then ``configs/<profile>.yaml`` (known keys
    only), then ``FORKCAST_*`` environment variables. The upstream key always
    comes from ``GROQ_API_KEY``. Values that fail to parse are ignored.
    """

    cfg_map: dict[str, object] = {f.name: f.default for f in fields(ProxyConfig) if f.name != "system_prompt"}

    # Optional YAML overrides; only accept known keys
    yaml_path = (config_dir or Path("configs")) / f"{profile}.yaml"
    if yaml_path.exists():
        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
            if isinstance(yaml_config, dict):
                for k in _YAML_KEYS:
                    if k in yaml_config and yaml_config[k] is not None:
                        try:
                            cfg_map[k] = _coerce(k, yaml_config[k])
                        except (TypeError, ValueError):
                            logger.warning("Ignoring invalid %s=%r in %s", k, yaml_config[k], yaml_path)
        except (OSError, yaml.YAMLError) as e:
            # Ignore YAML issues; stick to defaults
            logger.warning("Could not read %s: %s", yaml_path, e)

    # Environment overrides
    for k, env_name in _ENV_KEYS.items():
        v = os.getenv(env_name)
        if v is None or not v.strip():
            continue
        try:
            cfg_map[k] = _coerce(k, v.strip())
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", env_name, v)
            continue

    cfg_map["api_key"] = (os.getenv("GROQ_API_KEY") or "").strip() or None

    return ProxyConfig(**cfg_map)  # type: ignore[arg-type]


def load_client_config() -> ClientConfig:
    """Client settings from the environment.

    The Supabase pair belongs to the external auth provider; a missing pair is
    only reported, never fatal.
    """

    cfg = ClientConfig(
        proxy_url=os.getenv("FORKCAST_PROXY_URL", ClientConfig.proxy_url),
        supabase_url=os.getenv("SUPABASE_URL") or None,
        supabase_anon_key=os.getenv("SUPABASE_ANON_KEY") or None,
    )
    storage_path = os.getenv("FORKCAST_STORAGE_PATH")
    if storage_path:
        cfg.storage_path = Path(storage_path).expanduser()
    if not cfg.supabase_url or not cfg.supabase_anon_key:
        logger.warning("Supabase env missing: SUPABASE_URL or SUPABASE_ANON_KEY")
    return cfg

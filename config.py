"""
Local configuration for the CVEX order pipeline.

Values are loaded from ``~/.cvex-cli/config.json`` (the file written by the
``config`` command) and may be overridden with ``CVEX_*`` environment
variables. The resulting ``VenueConfig`` is passed explicitly to the signer,
client and oracle adapters; nothing reads ambient state after start-up.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".cvex-cli"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULT_API_URL = "https://api.cvex.trade"
DEFAULT_RECV_WINDOW_MS = 30000
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_ORACLE_MODEL = "openai-v1"

# Share of account equity committed per position-size hint.
POSITION_SIZE_FRACTIONS = {
    "small": "0.01",
    "medium": "0.05",
    "large": "0.10",
}

# Entry hints within this distance of the mark price become market orders.
MARKET_PRICE_TOLERANCE_PCT = "0.01"

_FILE_KEYS = {
    "api_url": "apiUrl",
    "api_key": "apiKey",
    "private_key_path": "privateKeyPath",
    "openai_api_key": "openaiApiKey",
    "deepseek_api_key": "deepseekApiKey",
    "oracle_model": "oracleModel",
    "recv_window": "recvWindow",
    "timeout": "timeout",
}
_SECRET_FIELDS = {"api_key", "openai_api_key", "deepseek_api_key"}


@dataclass(slots=True)
class VenueConfig:
    """Connection and credential settings for one operator."""

    api_url: str = DEFAULT_API_URL
    api_key: str = ""
    private_key_path: str = ""
    openai_api_key: str = ""
    deepseek_api_key: str = ""
    oracle_model: str = DEFAULT_ORACLE_MODEL
    recv_window: int = DEFAULT_RECV_WINDOW_MS
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def load(cls, path: Path | str | None = None, *, use_env: bool = True) -> "VenueConfig":
        """Read the config file (if present) and apply environment overrides."""
        config = cls.from_mapping(_read_config_file(Path(path) if path else CONFIG_FILE))
        if use_env:
            config.apply_env()
        return config

    @classmethod
    def from_mapping(cls, payload: Dict[str, Any]) -> "VenueConfig":
        """Build a config from the camelCase file layout (snake_case also accepted)."""
        config = cls()
        for item in fields(cls):
            file_key = _FILE_KEYS[item.name]
            if file_key in payload:
                value = payload[file_key]
            elif item.name in payload:
                value = payload[item.name]
            else:
                continue
            if value is None:
                continue
            try:
                setattr(config, item.name, _coerce(item.name, value))
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid %s=%r in config file; keeping %r", file_key, value, getattr(config, item.name))
        config.api_url = config.api_url.rstrip("/")
        return config

    def apply_env(self) -> None:
        for item in fields(self):
            env_name = f"CVEX_{item.name.upper()}"
            raw = os.getenv(env_name)
            if not raw:
                continue
            try:
                setattr(self, item.name, _coerce(item.name, raw))
            except ValueError:
                logger.warning("Ignoring invalid %s=%r; keeping %r", env_name, raw, getattr(self, item.name))
        self.api_url = self.api_url.rstrip("/")

    def to_mapping(self) -> Dict[str, Any]:
        return {_FILE_KEYS[name]: value for name, value in asdict(self).items()}

    def save(self, path: Path | str | None = None) -> Path:
        """Persist the config atomically and return the written path."""
        target = Path(path) if path else CONFIG_FILE
        target.parent.mkdir(parents=True, exist_ok=True)
        temp_path = target.with_suffix(".tmp")
        temp_path.write_text(json.dumps(self.to_mapping(), indent=2), encoding="utf-8")
        temp_path.replace(target)
        logger.info("Configuration saved to %s", target)
        return target

    def redacted(self) -> Dict[str, Any]:
        """Return a display-safe view with secrets masked."""
        view = asdict(self)
        for name in _SECRET_FIELDS:
            view[name] = "********" if view[name] else "Not set"
        if not view["private_key_path"]:
            view["private_key_path"] = "Not set"
        return view


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        logger.warning("Unable to read config file %s: %s", path, exc)
        return {}
    except json.JSONDecodeError:
        logger.warning("Config file %s is corrupted; using defaults.", path)
        return {}
    if not isinstance(payload, dict):
        return {}
    return payload


def _coerce(name: str, value: Any) -> Any:
    if name == "recv_window":
        return int(value)
    if name == "timeout":
        return float(value)
    return str(value)

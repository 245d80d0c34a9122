"""Runtime configuration from defaults, an optional YAML file and the environment."""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .providers.brasilapi import DEFAULT_BASE_URL as BRASIL_API_DEFAULT_URL
from .providers.cnpjws import DEFAULT_BASE_URL as CNPJWS_DEFAULT_URL
from .sync import (
    BATCH_DELAY,
    FULL_SYNC_BATCH_SIZE,
    ITEM_DELAY,
    MAX_ATTEMPTS,
    REMAINING_SYNC_BATCH_SIZE,
    RETRY_DELAY,
)


@dataclass(frozen=True)
class Settings:
    cnpjws_api_url: str = CNPJWS_DEFAULT_URL
    cnpjws_api_token: str = ""
    cnpjws_rate_limit: int = 10
    cnpjws_rate_window: float = 60.0
    brasil_api_url: str = BRASIL_API_DEFAULT_URL
    timeout: tuple[float, float] = (5.0, 30.0)
    full_batch_size: int = FULL_SYNC_BATCH_SIZE
    remaining_batch_size: int = REMAINING_SYNC_BATCH_SIZE
    item_delay: float = ITEM_DELAY
    batch_delay: float = BATCH_DELAY
    retry_delay: float = RETRY_DELAY
    max_attempts: int = MAX_ATTEMPTS

    def sync_options(self) -> dict[str, Any]:
        """Keyword arguments for :class:`~cnpjsync.sync.BulkSynchronizer`."""

        return {
            "item_delay": self.item_delay,
            "batch_delay": self.batch_delay,
            "retry_delay": self.retry_delay,
            "max_attempts": self.max_attempts,
        }


ENV_VARS: dict[str, str] = {
    "cnpjws_api_url": "CNPJWS_API_URL",
    "cnpjws_api_token": "CNPJWS_API_TOKEN",
    "cnpjws_rate_limit": "CNPJWS_RATE_LIMIT",
    "cnpjws_rate_window": "CNPJWS_RATE_WINDOW",
    "brasil_api_url": "BRASIL_API_URL",
    "timeout": "CNPJSYNC_TIMEOUT",
    "full_batch_size": "CNPJSYNC_FULL_BATCH_SIZE",
    "remaining_batch_size": "CNPJSYNC_REMAINING_BATCH_SIZE",
    "item_delay": "CNPJSYNC_ITEM_DELAY",
    "batch_delay": "CNPJSYNC_BATCH_DELAY",
    "retry_delay": "CNPJSYNC_RETRY_DELAY",
    "max_attempts": "CNPJSYNC_MAX_ATTEMPTS",
}

_POSITIVE = {"cnpjws_rate_limit", "cnpjws_rate_window", "full_batch_size", "remaining_batch_size", "max_attempts"}


def _parse_timeout(value: Any) -> tuple[float, float]:
    if isinstance(value, str):
        parts = [part for part in value.replace(";", ",").split(",") if part.strip()]
    elif isinstance(value, (list, tuple)):
        parts = list(value)
    else:
        parts = [value]
    if not parts or len(parts) > 2:
        raise ValueError(f"Timeout inválido: {value!r}")
    connect = float(parts[0])
    read = float(parts[1]) if len(parts) == 2 else Settings.timeout[1]
    return (connect, read)


_CONVERTERS: dict[str, Callable[[Any], Any]] = {
    "cnpjws_api_url": str,
    "cnpjws_api_token": str,
    "cnpjws_rate_limit": int,
    "cnpjws_rate_window": float,
    "brasil_api_url": str,
    "timeout": _parse_timeout,
    "full_batch_size": int,
    "remaining_batch_size": int,
    "item_delay": float,
    "batch_delay": float,
    "retry_delay": float,
    "max_attempts": int,
}


def _convert(key: str, value: Any) -> Any:
    try:
        converted = _CONVERTERS[key](value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Valor inválido para {key}: {value!r}") from exc
    if key in _POSITIVE and converted <= 0:
        raise ValueError(f"{key} deve ser positivo, recebido {value!r}")
    if isinstance(converted, float) and converted < 0:
        raise ValueError(f"{key} não pode ser negativo, recebido {value!r}")
    return converted


def _load_yaml(path: str | Path) -> dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Arquivo de configuração não encontrado: {config_path}")

    data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError("O YAML de configuração deve conter um dicionário")

    known = {item.name for item in fields(Settings)}
    unknown = set(map(str, data)) - known
    if unknown:
        raise ValueError(f"Chaves desconhecidas na configuração: {', '.join(sorted(unknown))}")
    return {str(key): value for key, value in data.items() if value is not None}


def load_settings(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Settings:
    """Build :class:`Settings`; environment variables win over the YAML file."""

    environ = os.environ if env is None else env
    values: dict[str, Any] = {}
    if config_path:
        values.update(_load_yaml(config_path))
    for key, variable in ENV_VARS.items():
        raw = environ.get(variable)
        if raw is not None and raw.strip() != "":
            values[key] = raw.strip()

    converted = {key: _convert(key, value) for key, value in values.items()}
    return replace(Settings(), **converted)

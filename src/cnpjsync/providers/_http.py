"""Shared HTTP handling for the registry providers."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import requests
from requests import Response

from ..errors import (
    CompanyLookupError,
    NotFound,
    RequestRejected,
    Unauthorized,
    Unavailable,
)
from ..utils.logging_setup import setup_logger
from .base import CompanyRecord, LookupOutcome

_BASE_LOGGER = setup_logger()
LOGGER = _BASE_LOGGER.getChild("providers")

_RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}
_REJECTED_STATUS_CODES = {400, 422}
DEFAULT_TIMEOUT = (5.0, 30.0)


def parse_timeout(timeout: Sequence[float] | None) -> tuple[float, float]:
    if timeout is None:
        return DEFAULT_TIMEOUT
    if len(timeout) == 1:
        return (float(timeout[0]), DEFAULT_TIMEOUT[1])
    return (float(timeout[0]), float(timeout[1]))


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class HttpProvider:
    """Base class: GET one JSON document per CNPJ and map failures to errors."""

    name = "http"

    def __init__(self, base_url: str, *, timeout: Sequence[float] | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = parse_timeout(timeout)

    def _url_for(self, registry_id: str) -> str:
        raise NotImplementedError

    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    def _normalise(self, payload: dict[str, Any], registry_id: str) -> CompanyRecord:
        raise NotImplementedError

    def _unwrap(self, payload: Any, registry_id: str) -> Any:
        return payload

    def _before_request(self) -> None:
        """Hook for throttling; called right before every upstream call."""

    def check_credentials(self) -> None:
        return None

    def _get(self, registry_id: str) -> Any:
        url = self._url_for(registry_id)
        LOGGER.debug("%s: GET %s", self.name, url)
        try:
            response = requests.get(url, headers=self._headers(), timeout=self._timeout)
        except requests.Timeout as exc:
            raise Unavailable(
                f"{self.name}: timeout para CNPJ {registry_id}",
                registry_id=registry_id,
            ) from exc
        except requests.RequestException as exc:
            raise Unavailable(
                f"{self.name}: falha de conexão para CNPJ {registry_id}: {exc}",
                registry_id=registry_id,
            ) from exc
        return self._decode(response, registry_id)

    def _decode(self, response: Response, registry_id: str) -> Any:
        status = response.status_code

        if status in {401, 403}:
            raise Unauthorized(
                f"{self.name}: credenciais inválidas ou ausentes (HTTP {status})",
                registry_id=registry_id,
                status_code=status,
            )

        if status == 404:
            LOGGER.info("%s: CNPJ %s não encontrado (404)", self.name, registry_id)
            raise NotFound(
                f"{self.name}: CNPJ {registry_id} não encontrado",
                registry_id=registry_id,
                status_code=status,
            )

        if status in _RETRYABLE_STATUS_CODES:
            raise Unavailable(
                f"{self.name}: status {status} para CNPJ {registry_id}",
                registry_id=registry_id,
                status_code=status,
                rate_limited=status == 429,
            )

        if status in _REJECTED_STATUS_CODES:
            raise RequestRejected(
                f"{self.name}: requisição rejeitada (HTTP {status}): {response.text[:200]}",
                registry_id=registry_id,
                status_code=status,
            )

        if status >= 400:
            LOGGER.error("%s: erro HTTP %s: %s", self.name, status, response.text[:200])
            raise Unavailable(
                f"{self.name}: erro HTTP {status}",
                registry_id=registry_id,
                status_code=status,
                transient=False,
            )

        if not response.content:
            raise NotFound(
                f"{self.name}: resposta vazia para CNPJ {registry_id}",
                registry_id=registry_id,
                status_code=status,
            )

        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise Unavailable(
                f"{self.name}: resposta JSON inválida",
                registry_id=registry_id,
                status_code=status,
                transient=False,
            ) from exc

    def _require_legal_name(self, value: Any, registry_id: str) -> str:
        legal_name = _text(value)
        if not legal_name:
            raise NotFound(
                f"{self.name}: razão social ausente para CNPJ {registry_id}",
                registry_id=registry_id,
            )
        return legal_name

    def resolve(self, registry_id: str) -> CompanyRecord:
        self.check_credentials()
        self._before_request()
        payload = self._unwrap(self._get(registry_id), registry_id)
        if not isinstance(payload, dict):
            LOGGER.debug("%s: formato inesperado: %s", self.name, type(payload))
            raise Unavailable(
                f"{self.name}: formato de resposta inesperado",
                registry_id=registry_id,
                transient=False,
            )
        return self._normalise(payload, registry_id)

    def lookup(self, registry_id: str) -> LookupOutcome:
        try:
            return LookupOutcome.success(self.resolve(registry_id))
        except CompanyLookupError as exc:
            return LookupOutcome.failure(exc)

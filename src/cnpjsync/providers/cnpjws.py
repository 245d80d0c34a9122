"""CNPJ.ws commercial API provider (primary source)."""

from __future__ import annotations

import os
from collections.abc import Sequence
from typing import Any

from ..errors import NotFound, Unauthorized
from ..rate_limiter import RateLimiter
from ._http import LOGGER as _PROVIDERS_LOGGER
from ._http import HttpProvider, _text
from .base import Address, CompanyRecord

LOGGER = _PROVIDERS_LOGGER.getChild("cnpjws")

DEFAULT_BASE_URL = "https://comercial.cnpj.ws/cnpj"


def _mask(token: str) -> str:
    return f"{token[:5]}..." if token else ""


class CnpjwsProvider(HttpProvider):
    """Provider that retrieves company information from the CNPJ.ws API.

    Every upstream call first takes a slot from the provider's own
    :class:`RateLimiter` (10 requests per minute by default).
    """

    name = "cnpjws"

    def __init__(
        self,
        api_token: str | None = None,
        *,
        base_url: str | None = None,
        rate_limiter: RateLimiter | None = None,
        timeout: Sequence[float] | None = None,
    ) -> None:
        super().__init__(
            base_url or os.getenv("CNPJWS_API_URL") or DEFAULT_BASE_URL,
            timeout=timeout,
        )
        self.api_token = api_token or os.getenv("CNPJWS_API_TOKEN") or ""
        self.rate_limiter = rate_limiter or RateLimiter(10, 60.0, name=self.name)
        if not self.api_token:
            LOGGER.warning("CNPJWS_API_TOKEN não configurado, o provedor principal vai falhar")
        LOGGER.debug(
            "CnpjwsProvider inicializado: base_url=%s token=%s",
            self.base_url,
            _mask(self.api_token),
        )

    def check_credentials(self) -> None:
        if not self.api_token:
            raise Unauthorized("Token CNPJWS não configurado (CNPJWS_API_TOKEN)")

    def _before_request(self) -> None:
        self.rate_limiter.acquire()

    def _url_for(self, registry_id: str) -> str:
        return f"{self.base_url}/{registry_id}"

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["x_api_token"] = self.api_token
        return headers

    def _unwrap(self, payload: Any, registry_id: str) -> Any:
        # The commercial endpoint answers with a list of matches.
        if isinstance(payload, list):
            if not payload:
                raise NotFound(
                    f"{self.name}: nenhum resultado para CNPJ {registry_id}",
                    registry_id=registry_id,
                )
            return payload[0]
        return payload

    def _normalise(self, payload: dict[str, Any], registry_id: str) -> CompanyRecord:
        legal_name = self._require_legal_name(payload.get("razao_social"), registry_id)

        establishment = payload.get("estabelecimento")
        if not isinstance(establishment, dict):
            establishment = {}
        city = establishment.get("cidade")
        state = establishment.get("estado")

        address = Address(
            street=_text(establishment.get("logradouro")),
            number=_text(establishment.get("numero")),
            complement=_text(establishment.get("complemento")),
            district=_text(establishment.get("bairro")),
            municipality=_text(city.get("nome")) if isinstance(city, dict) else "",
            state=_text(state.get("sigla")) if isinstance(state, dict) else "",
            postal_code=_text(establishment.get("cep")),
        )
        return CompanyRecord(legal_name=legal_name, address=address, source=self.name)

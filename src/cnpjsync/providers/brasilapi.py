"""BrasilAPI provider (fallback source)."""

from __future__ import annotations

import os
from collections.abc import Sequence
from typing import Any

from ._http import HttpProvider, _text
from .base import Address, CompanyRecord

DEFAULT_BASE_URL = "https://brasilapi.com.br/api"


class BrasilApiProvider(HttpProvider):
    """Provider backed by the public BrasilAPI ``/cnpj/v1`` endpoint."""

    name = "brasilapi"

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: Sequence[float] | None = None,
    ) -> None:
        super().__init__(
            base_url or os.getenv("BRASIL_API_URL") or DEFAULT_BASE_URL,
            timeout=timeout,
        )

    def _url_for(self, registry_id: str) -> str:
        return f"{self.base_url}/cnpj/v1/{registry_id}"

    def _normalise(self, payload: dict[str, Any], registry_id: str) -> CompanyRecord:
        legal_name = self._require_legal_name(payload.get("razao_social"), registry_id)
        address = Address(
            street=_text(payload.get("logradouro")),
            number=_text(payload.get("numero")),
            complement=_text(payload.get("complemento")),
            district=_text(payload.get("bairro")),
            municipality=_text(payload.get("municipio")),
            state=_text(payload.get("uf")),
            postal_code=_text(payload.get("cep")),
        )
        return CompanyRecord(legal_name=legal_name, address=address, source=self.name)

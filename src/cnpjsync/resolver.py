"""Primary/fallback resolution of a CNPJ to company data."""

from __future__ import annotations

from .errors import ResolutionFailed
from .providers.base import CompanyRecord, Provider
from .registry_id import validate_registry_id
from .utils.logging_setup import setup_logger

_BASE_LOGGER = setup_logger()
LOGGER = _BASE_LOGGER.getChild("resolver")


class LookupResolver:
    """Single entry point for CNPJ resolution.

    The primary provider is asked first; any failure sends the request to
    the fallback. The first successful record is returned as is, results of
    the two providers are never merged. Holds no state of its own.
    """

    def __init__(self, primary: Provider, fallback: Provider) -> None:
        self.primary = primary
        self.fallback = fallback

    def preflight(self) -> None:
        """Raise ``Unauthorized`` if the primary provider cannot authenticate."""

        self.primary.check_credentials()

    def get_company_data(self, registry_id: str) -> CompanyRecord:
        cnpj = validate_registry_id(registry_id)

        LOGGER.debug("Consultando CNPJ %s em %s", cnpj, self.primary.name)
        primary = self.primary.lookup(cnpj)
        if primary.ok:
            LOGGER.debug("CNPJ %s resolvido por %s", cnpj, self.primary.name)
            return primary.require_record()

        primary_error = primary.require_error()
        LOGGER.warning(
            "Falha em %s para CNPJ %s (%s): %s. Tentando fallback %s",
            self.primary.name,
            cnpj,
            primary_error.kind,
            primary_error,
            self.fallback.name,
        )

        fallback = self.fallback.lookup(cnpj)
        if fallback.ok:
            LOGGER.info("CNPJ %s resolvido pelo fallback %s", cnpj, self.fallback.name)
            return fallback.require_record()

        fallback_error = fallback.require_error()
        LOGGER.error(
            "Falha também no fallback %s para CNPJ %s (%s): %s",
            self.fallback.name,
            cnpj,
            fallback_error.kind,
            fallback_error,
        )
        raise ResolutionFailed(cnpj, primary_error, fallback_error)

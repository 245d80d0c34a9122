"""Registry data providers for ``cnpjsync``."""

from .base import Address, CompanyRecord, LookupOutcome, Provider
from .brasilapi import BrasilApiProvider
from .cnpjws import CnpjwsProvider

__all__ = [
    "Address",
    "BrasilApiProvider",
    "CnpjwsProvider",
    "CompanyRecord",
    "LookupOutcome",
    "Provider",
]

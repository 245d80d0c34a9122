"""Provider base interfaces and shared types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from ..errors import CompanyLookupError


@dataclass(frozen=True)
class Address:
    street: str = ""
    number: str = ""
    complement: str = ""
    district: str = ""
    municipality: str = ""
    state: str = ""
    postal_code: str = ""


@dataclass(frozen=True)
class CompanyRecord:
    legal_name: str
    address: Address = field(default_factory=Address)
    source: str = ""


@dataclass(frozen=True)
class LookupOutcome:
    """Result value of a single provider lookup: a record or an error."""

    record: CompanyRecord | None = None
    error: CompanyLookupError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.record is not None

    def require_record(self) -> CompanyRecord:
        if self.record is None:
            raise ValueError("LookupOutcome sem registro")
        return self.record

    def require_error(self) -> CompanyLookupError:
        if self.error is None:
            raise ValueError("LookupOutcome sem erro")
        return self.error

    @classmethod
    def success(cls, record: CompanyRecord) -> LookupOutcome:
        return cls(record=record)

    @classmethod
    def failure(cls, error: CompanyLookupError) -> LookupOutcome:
        return cls(error=error)


class Provider(Protocol):
    """Protocol defining a registry data provider."""

    name: str

    def resolve(self, registry_id: str) -> CompanyRecord:
        """Retrieve the company record for a normalised CNPJ or raise."""

        ...

    def lookup(self, registry_id: str) -> LookupOutcome:
        """Like :meth:`resolve` but returns failures as a value."""

        ...

    def check_credentials(self) -> None:
        """Raise :class:`~cnpjsync.errors.Unauthorized` if unusable."""

        ...

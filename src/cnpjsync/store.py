"""Seller records and the persistence contract the synchronizer relies on."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Final, Protocol

from .errors import SellerNotFound
from .utils.logging_setup import setup_logger

_BASE_LOGGER = setup_logger()
LOGGER = _BASE_LOGGER.getChild("store")

ADDRESS_PENDING: Final = "Endereço pendente"

# Fields a patch may touch; id and created_at are owned by the store.
UPDATABLE_FIELDS: Final = frozenset({"registry_id", "legal_name", "email", "phone", "address"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StoredSeller:
    id: str
    registry_id: str
    legal_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, str]:
        data: dict[str, str] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            data[item.name] = value.isoformat() if isinstance(value, datetime) else str(value)
        return data


def check_patch(patch: Mapping[str, str]) -> dict[str, str]:
    unknown = set(patch) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Campos não atualizáveis: {', '.join(sorted(unknown))}")
    return {key: "" if value is None else str(value) for key, value in patch.items()}


class RecordStore(Protocol):
    """Persistence of seller records, implemented outside the core."""

    def find_all(self) -> Sequence[StoredSeller]:
        ...

    def find_by_address_sentinel(self, value: str) -> Sequence[StoredSeller]:
        ...

    def find_by_id(self, seller_id: str) -> StoredSeller:
        """Return the stored seller or raise :class:`SellerNotFound`."""

        ...

    def update(self, seller_id: str, patch: Mapping[str, str]) -> StoredSeller:
        ...


class InMemoryRecordStore:
    """Dict-backed :class:`RecordStore`, preserving insertion order."""

    def __init__(
        self,
        sellers: Iterable[StoredSeller] = (),
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._clock = clock
        self._sellers: dict[str, StoredSeller] = {}
        for seller in sellers:
            self._sellers[seller.id] = seller

    def add(self, seller: StoredSeller) -> StoredSeller:
        self._sellers[seller.id] = seller
        return seller

    def find_all(self) -> list[StoredSeller]:
        return list(self._sellers.values())

    def find_by_address_sentinel(self, value: str) -> list[StoredSeller]:
        return [seller for seller in self._sellers.values() if seller.address == value]

    def find_by_id(self, seller_id: str) -> StoredSeller:
        try:
            return self._sellers[seller_id]
        except KeyError:
            raise SellerNotFound(f"Vendedor com ID {seller_id} não encontrado") from None

    def update(self, seller_id: str, patch: Mapping[str, str]) -> StoredSeller:
        current = self.find_by_id(seller_id)
        updated = replace(current, **check_patch(patch), updated_at=self._clock())
        self._sellers[seller_id] = updated
        LOGGER.debug("Vendedor %s atualizado: %s", seller_id, sorted(patch))
        return updated

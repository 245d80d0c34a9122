"""Bulk synchronisation of stored sellers against the registry providers."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Final

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from .errors import (
    FailureKind,
    Unauthorized,
    classify_failure,
    is_credential_failure,
    is_retryable,
)
from .providers.base import Address
from .registry_id import is_valid_registry_id
from .resolver import LookupResolver
from .store import ADDRESS_PENDING, RecordStore, StoredSeller
from .utils.logging_setup import setup_logger

_BASE_LOGGER = setup_logger()
LOGGER = _BASE_LOGGER.getChild("sync")

FULL_SYNC_BATCH_SIZE: Final = 60
REMAINING_SYNC_BATCH_SIZE: Final = 100
ITEM_DELAY: Final = 1.0
BATCH_DELAY: Final = 5.0
RETRY_DELAY: Final = 5.0
MAX_ATTEMPTS: Final = 3


def format_address(address: Address) -> str:
    """Render an address as ``"Rua X, 10 - Centro, Cidade - UF, 00000-000"``."""

    return (
        f"{address.street}, {address.number} - {address.district}, "
        f"{address.municipality} - {address.state}, {address.postal_code}"
    )


@dataclass(frozen=True)
class SyncFailure:
    registry_id: str
    message: str
    kind: FailureKind

    def to_dict(self) -> dict[str, str]:
        return {"registry_id": self.registry_id, "message": self.message, "kind": self.kind.value}


@dataclass(frozen=True)
class SyncReport:
    total: int
    success: int
    failed: int
    errors: tuple[SyncFailure, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "errors": [failure.to_dict() for failure in self.errors],
        }


@dataclass
class _ReportBuilder:
    total: int
    success: int = 0
    errors: list[SyncFailure] = field(default_factory=list)

    def add_failure(self, registry_id: str, message: str, kind: FailureKind) -> None:
        self.errors.append(SyncFailure(registry_id=registry_id, message=message, kind=kind))

    def build(self) -> SyncReport:
        return SyncReport(
            total=self.total,
            success=self.success,
            failed=len(self.errors),
            errors=tuple(self.errors),
        )


class SellerUpdater:
    """Refresh one stored seller from the registry (read, resolve, write back)."""

    def __init__(self, store: RecordStore, resolver: LookupResolver) -> None:
        self.store = store
        self.resolver = resolver

    def update_seller(self, seller_id: str) -> StoredSeller:
        seller = self.store.find_by_id(seller_id)
        record = self.resolver.get_company_data(seller.registry_id)
        # Contact fields (email, phone) are never sourced from lookups.
        patch = {
            "legal_name": record.legal_name,
            "address": format_address(record.address),
        }
        updated = self.store.update(seller.id, patch)
        LOGGER.debug("Vendedor %s atualizado via %s", seller.id, record.source)
        return updated


def _chunks(items: Sequence[StoredSeller], size: int) -> Iterator[Sequence[StoredSeller]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class BulkSynchronizer:
    """Drive :class:`SellerUpdater` over a candidate set, one item at a time.

    Candidates are processed in chunks of ``batch_size``. After every
    successful item the synchronizer pauses ``item_delay`` seconds before the
    next item of the chunk, and ``batch_delay`` seconds between chunks.
    Retryable failures are retried for the same item up to ``max_attempts``
    attempts in total, ``retry_delay`` seconds apart. Per-item failures end up
    in the :class:`SyncReport`; only credential failures abort the run.

    A run is not coordinated with other runs: two concurrent runs share (and
    double-consume) the primary provider's rate limit.
    """

    def __init__(
        self,
        updater: SellerUpdater,
        *,
        batch_size: int = FULL_SYNC_BATCH_SIZE,
        item_delay: float = ITEM_DELAY,
        batch_delay: float = BATCH_DELAY,
        retry_delay: float = RETRY_DELAY,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        self.updater = updater
        self.batch_size = batch_size
        self.item_delay = item_delay
        self.batch_delay = batch_delay
        self.retry_delay = retry_delay
        self.max_attempts = max_attempts
        self._sleep = sleep

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        LOGGER.warning(
            "Erro temporário (tentativa %s/%s): %s. Nova tentativa em %.0fs",
            retry_state.attempt_number,
            self.max_attempts,
            exc,
            self.retry_delay,
        )

    def _update_with_retry(self, seller: StoredSeller) -> int:
        """Update one seller, retrying transient failures; return attempts used."""

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.retry_delay),
            retry=retry_if_exception(is_retryable),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )
        attempts = 0
        for attempt in retrying:
            with attempt:
                attempts = attempt.retry_state.attempt_number
                self.updater.update_seller(seller.id)
        return attempts

    def _process(self, seller: StoredSeller, report: _ReportBuilder, position: int) -> bool:
        prefix = f"[{position}/{report.total}]"

        if not is_valid_registry_id(seller.registry_id):
            LOGGER.warning("%s CNPJ inválido, ignorado: %s", prefix, seller.registry_id)
            report.add_failure(
                seller.registry_id,
                f"CNPJ inválido: {seller.registry_id}",
                FailureKind.INVALID_ID,
            )
            return False

        try:
            attempts = self._update_with_retry(seller)
        except Exception as exc:
            if is_credential_failure(exc):
                LOGGER.error("%s Credenciais rejeitadas, abortando: %s", prefix, exc)
                if isinstance(exc, Unauthorized):
                    raise
                raise Unauthorized(
                    f"Credenciais rejeitadas por todos os provedores: {exc}",
                    registry_id=seller.registry_id,
                ) from exc
            kind = classify_failure(exc)
            LOGGER.error("%s Erro ao atualizar %s (%s): %s", prefix, seller.registry_id, kind.value, exc)
            report.add_failure(seller.registry_id, str(exc), kind)
            return False

        report.success += 1
        if attempts > 1:
            LOGGER.info("%s Atualizado após %s tentativas: %s", prefix, attempts, seller.registry_id)
        else:
            LOGGER.info("%s Atualizado: %s", prefix, seller.registry_id)
        return True

    def run(self, candidates: Sequence[StoredSeller]) -> SyncReport:
        items = list(candidates)
        report = _ReportBuilder(total=len(items))
        batches = (len(items) + self.batch_size - 1) // self.batch_size

        LOGGER.info(
            "Iniciando sincronização de %s vendedores em %s lotes de até %s",
            len(items),
            batches,
            self.batch_size,
        )

        position = 0
        for batch_no, batch in enumerate(_chunks(items, self.batch_size), start=1):
            LOGGER.info("Lote %s/%s (%s itens)", batch_no, batches, len(batch))
            for index, seller in enumerate(batch):
                position += 1
                succeeded = self._process(seller, report, position)
                if succeeded and index < len(batch) - 1 and self.item_delay > 0:
                    self._sleep(self.item_delay)

            if batch_no < batches and self.batch_delay > 0:
                LOGGER.info(
                    "Processados %s/%s vendedores. Aguardando %.0f segundos...",
                    position,
                    len(items),
                    self.batch_delay,
                )
                self._sleep(self.batch_delay)

        result = report.build()
        LOGGER.info(
            "Sincronização finalizada: total=%s sucesso=%s falhas=%s",
            result.total,
            result.success,
            result.failed,
        )
        return result


def sync_all(
    store: RecordStore,
    updater: SellerUpdater,
    *,
    batch_size: int = FULL_SYNC_BATCH_SIZE,
    **options: Any,
) -> SyncReport:
    """Full sync: every stored seller is a candidate."""

    updater.resolver.preflight()
    candidates = store.find_all()
    return BulkSynchronizer(updater, batch_size=batch_size, **options).run(candidates)


def sync_remaining(
    store: RecordStore,
    updater: SellerUpdater,
    *,
    batch_size: int = REMAINING_SYNC_BATCH_SIZE,
    **options: Any,
) -> SyncReport:
    """Remaining sync: only sellers whose address is still pending."""

    updater.resolver.preflight()
    candidates = store.find_by_address_sentinel(ADDRESS_PENDING)
    return BulkSynchronizer(updater, batch_size=batch_size, **options).run(candidates)

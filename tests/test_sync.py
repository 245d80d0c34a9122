from datetime import datetime, timezone

import pytest

from cnpjsync.errors import FailureKind, NotFound, Unauthorized, Unavailable
from cnpjsync.providers.base import Address
from cnpjsync.resolver import LookupResolver
from cnpjsync.store import ADDRESS_PENDING, InMemoryRecordStore, StoredSeller
from cnpjsync.sync import (
    BulkSynchronizer,
    SellerUpdater,
    SyncReport,
    format_address,
    sync_all,
    sync_remaining,
)
from tests.fakes import VALID_A, VALID_B, VALID_C, FakeProvider, make_record

CREATED = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _seller(seller_id: str, registry_id: str, address: str = "Rua Antiga, 1") -> StoredSeller:
    return StoredSeller(
        id=seller_id,
        registry_id=registry_id,
        legal_name="Nome antigo",
        email=f"{seller_id}@example.com",
        phone="11999990000",
        address=address,
        created_at=CREATED,
        updated_at=CREATED,
    )


def _synchronizer(
    store: InMemoryRecordStore,
    primary: FakeProvider,
    fallback: FakeProvider,
    sleeps: list[float],
    **options: object,
) -> BulkSynchronizer:
    updater = SellerUpdater(store, LookupResolver(primary, fallback))
    return BulkSynchronizer(updater, sleep=sleeps.append, **options)


def test_format_address() -> None:
    address = Address(
        street="Rua das Flores",
        number="100",
        complement="Sala 2",
        district="Centro",
        municipality="São Paulo",
        state="SP",
        postal_code="01001000",
    )
    assert format_address(address) == "Rua das Flores, 100 - Centro, São Paulo - SP, 01001000"


def test_update_seller_writes_name_and_address_only() -> None:
    store = InMemoryRecordStore([_seller("1", VALID_A)])
    resolver = LookupResolver(
        FakeProvider("primary", default=make_record("EMPRESA A LTDA")),
        FakeProvider("fallback"),
    )

    updated = SellerUpdater(store, resolver).update_seller("1")

    assert updated.legal_name == "EMPRESA A LTDA"
    assert updated.address == "Rua das Flores, 100 - Centro, São Paulo - SP, 01001000"
    assert updated.email == "1@example.com"
    assert updated.phone == "11999990000"
    assert updated.created_at == CREATED
    assert updated.updated_at > CREATED
    assert store.find_by_id("1") == updated


def test_end_to_end_primary_fallback_and_not_found(sleeps: list[float]) -> None:
    store = InMemoryRecordStore(
        [_seller("a", VALID_A), _seller("b", VALID_B), _seller("c", VALID_C)]
    )
    primary = FakeProvider(
        "primary",
        {
            VALID_A: make_record("EMPRESA A LTDA"),
            VALID_B: Unavailable("503", status_code=503, transient=False),
            VALID_C: NotFound("404", status_code=404),
        },
    )
    fallback = FakeProvider(
        "fallback",
        {VALID_B: make_record("EMPRESA B SA"), VALID_C: NotFound("404", status_code=404)},
    )

    report = _synchronizer(store, primary, fallback, sleeps).run(store.find_all())

    assert (report.total, report.success, report.failed) == (3, 2, 1)
    assert len(report.errors) == 1
    assert report.errors[0].registry_id == VALID_C
    assert report.errors[0].kind is FailureKind.NOT_FOUND
    assert store.find_by_id("a").legal_name == "EMPRESA A LTDA"
    assert store.find_by_id("b").legal_name == "EMPRESA B SA"
    assert store.find_by_id("c").legal_name == "Nome antigo"
    # NotFound is not retried.
    assert primary.calls == [VALID_A, VALID_B, VALID_C]
    assert report.to_dict()["errors"] == [
        {"registry_id": VALID_C, "message": str(report.errors[0].message), "kind": "not_found"}
    ]


def test_retryable_failure_is_retried_for_the_same_item(sleeps: list[float]) -> None:
    store = InMemoryRecordStore(
        [_seller("a", VALID_A), _seller("b", VALID_B), _seller("c", VALID_C)]
    )
    primary = FakeProvider(
        "primary",
        {
            VALID_A: make_record("A"),
            VALID_B: [Unavailable("reset"), Unavailable("timeout"), make_record("B")],
            VALID_C: make_record("C"),
        },
    )
    fallback = FakeProvider("fallback", default=Unavailable("503", status_code=503))

    report = _synchronizer(store, primary, fallback, sleeps).run(store.find_all())

    assert (report.total, report.success, report.failed) == (3, 3, 0)
    assert primary.calls == [VALID_A, VALID_B, VALID_B, VALID_B, VALID_C]
    # item delay, two retry delays, item delay; nothing after the last item
    assert sleeps == [1.0, 5.0, 5.0, 1.0]


def test_retries_stop_after_max_attempts(sleeps: list[float]) -> None:
    store = InMemoryRecordStore([_seller("a", VALID_A)])
    primary = FakeProvider("primary", default=Unavailable("429", status_code=429, rate_limited=True))
    fallback = FakeProvider("fallback", default=Unavailable("reset"))

    report = _synchronizer(store, primary, fallback, sleeps, retry_delay=2.0).run(store.find_all())

    assert report.failed == 1
    assert report.errors[0].kind is FailureKind.TRANSIENT
    assert len(primary.calls) == 3
    assert sleeps == [2.0, 2.0]


def test_invalid_identifier_skips_the_provider_chain(sleeps: list[float]) -> None:
    store = InMemoryRecordStore([_seller("bad", "11111111111111"), _seller("a", VALID_A)])
    primary = FakeProvider("primary", default=make_record("A"))
    fallback = FakeProvider("fallback", default=make_record("A"))

    report = _synchronizer(store, primary, fallback, sleeps).run(store.find_all())

    assert (report.success, report.failed) == (1, 1)
    assert report.errors[0].registry_id == "11111111111111"
    assert report.errors[0].kind is FailureKind.INVALID_ID
    assert "11111111111111" not in primary.calls
    assert fallback.calls == []
    # no pacing delay after a local rejection
    assert sleeps == []


def test_batches_are_paced(sleeps: list[float]) -> None:
    sellers = [_seller(str(i), VALID_A) for i in range(5)]
    store = InMemoryRecordStore(sellers)
    primary = FakeProvider("primary", default=make_record("A"))

    report = _synchronizer(
        store,
        primary,
        FakeProvider("fallback"),
        sleeps,
        batch_size=2,
        item_delay=1.0,
        batch_delay=7.0,
    ).run(store.find_all())

    assert report.success == 5
    assert sleeps == [1.0, 7.0, 1.0, 7.0]


def test_items_are_processed_in_order(sleeps: list[float]) -> None:
    store = InMemoryRecordStore(
        [_seller("c", VALID_C), _seller("a", VALID_A), _seller("b", VALID_B)]
    )
    primary = FakeProvider("primary", default=make_record("X"))

    _synchronizer(store, primary, FakeProvider("fallback"), sleeps, batch_size=2).run(
        store.find_all()
    )

    assert primary.calls == [VALID_C, VALID_A, VALID_B]


def test_item_failure_outside_the_lookup_chain_is_contained(sleeps: list[float]) -> None:
    store = InMemoryRecordStore([_seller("a", VALID_A)])
    ghost = _seller("ghost", VALID_B)
    primary = FakeProvider("primary", default=make_record("X"))

    report = _synchronizer(store, primary, FakeProvider("fallback"), sleeps).run(
        [ghost, store.find_by_id("a")]
    )

    assert (report.success, report.failed) == (1, 1)
    assert report.errors[0].kind is FailureKind.NOT_FOUND


def test_credential_failure_on_every_provider_aborts_the_run(sleeps: list[float]) -> None:
    store = InMemoryRecordStore([_seller("a", VALID_A), _seller("b", VALID_B)])
    primary = FakeProvider("primary", default=Unauthorized("401", status_code=401))
    fallback = FakeProvider("fallback", default=Unauthorized("403", status_code=403))

    with pytest.raises(Unauthorized):
        _synchronizer(store, primary, fallback, sleeps).run(store.find_all())

    assert primary.calls == [VALID_A]


def test_empty_candidate_set(sleeps: list[float]) -> None:
    store = InMemoryRecordStore()
    report = _synchronizer(store, FakeProvider("p"), FakeProvider("f"), sleeps).run([])

    assert report == SyncReport(total=0, success=0, failed=0, errors=())
    assert sleeps == []


@pytest.mark.parametrize("options", [{"batch_size": 0}, {"max_attempts": 0}])
def test_rejects_invalid_options(options: dict[str, int]) -> None:
    updater = SellerUpdater(InMemoryRecordStore(), LookupResolver(FakeProvider("p"), FakeProvider("f")))
    with pytest.raises(ValueError):
        BulkSynchronizer(updater, **options)


def test_sync_remaining_only_touches_pending_addresses(sleeps: list[float]) -> None:
    store = InMemoryRecordStore(
        [
            _seller("a", VALID_A, address=ADDRESS_PENDING),
            _seller("b", VALID_B, address="Rua Conhecida, 5"),
            _seller("c", VALID_C, address=ADDRESS_PENDING),
        ]
    )
    primary = FakeProvider("primary", default=make_record("NOVO NOME"))
    updater = SellerUpdater(store, LookupResolver(primary, FakeProvider("fallback")))

    report = sync_remaining(store, updater, sleep=sleeps.append)

    assert (report.total, report.success) == (2, 2)
    assert primary.calls == [VALID_A, VALID_C]
    assert store.find_by_id("b").legal_name == "Nome antigo"
    assert store.find_by_address_sentinel(ADDRESS_PENDING) == []


def test_sync_all_aborts_before_reading_when_credentials_are_missing() -> None:
    class _ExplodingStore(InMemoryRecordStore):
        def find_all(self):
            raise AssertionError("candidates must not be read")

    store = _ExplodingStore()
    primary = FakeProvider("primary", credentials_error=Unauthorized("sem token"))
    updater = SellerUpdater(store, LookupResolver(primary, FakeProvider("fallback")))

    with pytest.raises(Unauthorized):
        sync_all(store, updater)


def test_sync_all_propagates_candidate_read_failures() -> None:
    class _BrokenStore(InMemoryRecordStore):
        def find_all(self):
            raise ConnectionError("database down")

    store = _BrokenStore()
    updater = SellerUpdater(store, LookupResolver(FakeProvider("p"), FakeProvider("f")))

    with pytest.raises(ConnectionError):
        sync_all(store, updater)


def test_sync_all_uses_every_record(sleeps: list[float]) -> None:
    store = InMemoryRecordStore([_seller("a", VALID_A), _seller("b", VALID_B, ADDRESS_PENDING)])
    primary = FakeProvider("primary", default=make_record("X"))
    updater = SellerUpdater(store, LookupResolver(primary, FakeProvider("fallback")))

    report = sync_all(store, updater, sleep=sleeps.append, item_delay=0.5)

    assert report.success == 2
    assert sleeps == [0.5]

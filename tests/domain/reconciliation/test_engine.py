from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pytest

from replisync.adapters.memory import InMemoryServerStore
from replisync.domain.model import DOCUMENT_ACCESSORS, Document, new_document
from replisync.domain.ports.server import EntityAccessors
from replisync.domain.reconciliation import (
    ConflictStrategy,
    CustomResolver,
    SyncedEntity,
    SyncResult,
    SyncServer,
)
from tests.helpers.documents import T0, T1, T2, RecordingTransaction, StepClock, make_document

if TYPE_CHECKING:
    from collections.abc import Sequence


def _server(
    store: InMemoryServerStore,
    clock: StepClock,
    strategy: ConflictStrategy | str = ConflictStrategy.TAKE_CLIENT,
) -> SyncServer[Document, str]:
    return SyncServer(
        store=store,
        accessors=DOCUMENT_ACCESSORS,
        conflict_strategy=strategy,
        clock=clock,
    )


def _conflicting_setup() -> tuple[InMemoryServerStore, Document]:
    store = InMemoryServerStore(
        [make_document("a", {"text": "server"}, updated_at=T1, synced_at=T1)]
    )
    client_version = make_document("a", {"text": "client"}, updated_at=T2, synced_at=T0)
    return store, client_version


def test_empty_submission_at_latest_checkpoint_is_a_no_op(clock: StepClock) -> None:
    store = InMemoryServerStore([make_document("a", {"text": "x"}, synced_at=T1)])

    result = asyncio.run(_server(store, clock).sync([], T1))

    assert result.is_empty
    assert result.synced == []
    assert result.new_entities == []
    assert result.conflicted == []


def test_new_entities_are_created_with_round_stamp(clock: StepClock) -> None:
    store = InMemoryServerStore()
    submitted = [new_document({"text": f"Note {index}"}) for index in range(3)]
    round_start = clock.current

    result = asyncio.run(_server(store, clock).sync(submitted))

    assert len(store) == 3
    assert all(row.synced_at is not None and row.synced_at >= round_start for row in store.rows)
    assert [item.entity.key for item in result.synced] == [doc.key for doc in submitted]
    assert all(item.reassigned_key is None for item in result.synced)


def test_two_new_notes_are_synced_in_submission_order(clock: StepClock) -> None:
    store = InMemoryServerStore()
    notes = [new_document({"text": "Note 1"}), new_document({"text": "Note 2"})]

    result = asyncio.run(_server(store, clock).sync(notes))

    assert len(store) == 2
    assert [item.entity.body["text"] for item in result.synced] == ["Note 1", "Note 2"]
    assert result.new_entities == []
    assert result.conflicted == []


def test_colliding_provisional_key_is_reassigned(clock: StepClock) -> None:
    store = InMemoryServerStore(key_factory=lambda: "permanent-1")
    first = make_document("tmp", {"text": "first"})
    second = make_document("tmp", {"text": "second"})

    result = asyncio.run(_server(store, clock).sync([first, second]))

    assert sorted(row.key for row in store.rows) == ["permanent-1", "tmp"]
    assert result.synced[0].reassigned_key is None
    reassigned = result.synced[1]
    assert reassigned.reassigned_key == "permanent-1"
    assert reassigned.entity.key == "tmp"
    assert reassigned.entity.body == {"text": "second"}


def test_server_assigned_permanent_keys_are_reported(clock: StepClock) -> None:
    class PromotingStore(InMemoryServerStore):
        async def create_entity(self, entity: Document, sync_stamp: datetime) -> Document:
            return await super().create_entity(replace(entity, key=f"srv-{entity.key}"), sync_stamp)

    store = PromotingStore()

    result = asyncio.run(_server(store, clock).sync([make_document("local-1")]))

    assert result.synced == [SyncedEntity(make_document("local-1"), reassigned_key="srv-local-1")]
    assert [row.key for row in store.rows] == ["srv-local-1"]


def test_update_of_known_entity_without_conflict(clock: StepClock) -> None:
    store = InMemoryServerStore([make_document("a", {"text": "old"}, synced_at=T0)])
    edited = make_document("a", {"text": "new"}, updated_at=T1, synced_at=T0)

    result = asyncio.run(_server(store, clock).sync([edited], T0))

    [row] = store.rows
    assert row.body == {"text": "new"}
    assert len(result.synced) == 1
    assert result.synced[0].entity.synced_at == result.sync_stamp


def test_take_client_overwrites_server_row(clock: StepClock) -> None:
    store, client_version = _conflicting_setup()

    result = asyncio.run(_server(store, clock, ConflictStrategy.TAKE_CLIENT).sync([client_version], T0))

    [row] = store.rows
    assert row.body == {"text": "client"}
    assert row.synced_at == result.sync_stamp
    assert [item.entity.body for item in result.synced] == [{"text": "client"}]
    assert result.conflicted == []


def test_take_server_keeps_server_row(clock: StepClock) -> None:
    store, client_version = _conflicting_setup()

    result = asyncio.run(_server(store, clock, ConflictStrategy.TAKE_SERVER).sync([client_version], T0))

    [row] = store.rows
    assert row.body == {"text": "server"}
    assert row.synced_at == T1
    assert [item.entity.body for item in result.synced] == [{"text": "server"}]
    assert result.conflicted == []


def test_last_updated_tie_goes_to_server(clock: StepClock) -> None:
    store, client_version = _conflicting_setup()
    client_version.updated_at = T1

    result = asyncio.run(_server(store, clock, "lastUpdated").sync([client_version], T0))

    assert [row.body for row in store.rows] == [{"text": "server"}]
    assert [item.entity.body for item in result.synced] == [{"text": "server"}]


def test_last_updated_prefers_newer_client(clock: StepClock) -> None:
    store, client_version = _conflicting_setup()

    result = asyncio.run(_server(store, clock, "lastUpdated").sync([client_version], T0))

    assert [row.body for row in store.rows] == [{"text": "client"}]
    assert [item.entity.body for item in result.synced] == [{"text": "client"}]


def test_ask_client_reports_server_version(clock: StepClock) -> None:
    store, client_version = _conflicting_setup()

    result = asyncio.run(_server(store, clock, ConflictStrategy.ASK_CLIENT).sync([client_version], T0))

    assert [row.body for row in store.rows] == [{"text": "server"}]
    assert result.synced == []
    assert [entity.body for entity in result.conflicted] == [{"text": "server"}]


def test_equal_concurrent_version_is_not_written_again(clock: StepClock) -> None:
    store = InMemoryServerStore([make_document("a", {"text": "same"}, synced_at=T1)])
    client_version = make_document("a", {"text": "same"}, updated_at=T2, synced_at=T0)

    result = asyncio.run(_server(store, clock, ConflictStrategy.ASK_CLIENT).sync([client_version], T0))

    [row] = store.rows
    assert row.synced_at == T1
    assert [item.entity.synced_at for item in result.synced] == [T1]
    assert result.conflicted == []


def test_unsubmitted_modifications_are_new_entities_once(clock: StepClock) -> None:
    store = InMemoryServerStore(
        [
            make_document("old", synced_at=T0),
            make_document("b", synced_at=T1),
            make_document("c", synced_at=T2),
        ]
    )

    result = asyncio.run(_server(store, clock).sync([make_document("a")], T0))

    assert [entity.key for entity in result.new_entities] == ["b", "c"]
    assert [item.entity.key for item in result.synced] == ["a"]


def test_first_sync_receives_every_server_entity(clock: StepClock) -> None:
    store = InMemoryServerStore([make_document("b", synced_at=T0), make_document("c", synced_at=T1)])

    result = asyncio.run(_server(store, clock).sync([]))

    assert sorted(entity.key for entity in result.new_entities) == ["b", "c"]


class _FailingUpdateStore(InMemoryServerStore):
    def __init__(self, error: Exception, rows: Sequence[Document]) -> None:
        super().__init__(rows)
        self.error = error

    async def update_entity(self, entity: Document, sync_stamp: datetime) -> Document:
        raise self.error


def test_failed_round_rolls_back_once_and_reraises(clock: StepClock) -> None:
    boom = RuntimeError("disk full")
    store = _FailingUpdateStore(boom, [make_document("a", synced_at=T0)])
    transaction = RecordingTransaction()
    server = SyncServer(
        store=store,
        accessors=DOCUMENT_ACCESSORS,
        transaction=transaction.hooks(),
        clock=clock,
    )

    with pytest.raises(RuntimeError) as exc:
        asyncio.run(server.sync([make_document("a", {"text": "edit"})], T0))

    assert exc.value is boom
    assert transaction.calls == ["start", "rollback"]


def test_successful_round_commits(clock: StepClock) -> None:
    transaction = RecordingTransaction()
    server = SyncServer(
        store=InMemoryServerStore(),
        accessors=DOCUMENT_ACCESSORS,
        transaction=transaction.hooks(),
        clock=clock,
    )

    asyncio.run(server.sync([new_document({"text": "hello"})]))

    assert transaction.calls == ["start", "commit"]


def test_sync_stamp_comes_from_clock(clock: StepClock) -> None:
    expected = clock.current

    result = asyncio.run(_server(InMemoryServerStore(), clock).sync([]))

    assert result.sync_stamp == expected


def test_custom_resolver_owns_bucketing(clock: StepClock) -> None:
    store, client_version = _conflicting_setup()
    seen: list[tuple[str, str]] = []

    def resolver(
        client_entity: Document,
        server_entity: Document,
        sync_stamp: datetime,
        result: SyncResult[Document],
    ) -> None:
        seen.append((client_entity.body["text"], server_entity.body["text"]))
        result.conflicted.append(server_entity)

    result = asyncio.run(_server_with(store, clock, resolver).sync([client_version], T0))

    assert seen == [("client", "server")]
    assert result.synced == []
    assert [entity.body for entity in result.conflicted] == [{"text": "server"}]


def test_async_custom_resolver_is_awaited(clock: StepClock) -> None:
    store, client_version = _conflicting_setup()

    async def merge(
        client_entity: Document,
        server_entity: Document,
        sync_stamp: datetime,
        result: SyncResult[Document],
    ) -> None:
        merged = replace(client_entity, body={**server_entity.body, "merged": True})
        stored = await store.update_entity(merged, sync_stamp)
        result.synced.append(SyncedEntity(stored))

    result = asyncio.run(_server_with(store, clock, merge).sync([client_version], T0))

    assert [row.body for row in store.rows] == [{"text": "server", "merged": True}]
    assert [item.entity.body for item in result.synced] == [{"text": "server", "merged": True}]


def _server_with(
    store: InMemoryServerStore,
    clock: StepClock,
    resolver: CustomResolver[Document],
) -> SyncServer[Document, str]:
    return SyncServer(
        store=store,
        accessors=DOCUMENT_ACCESSORS,
        conflict_strategy=resolver,
        clock=clock,
    )


def test_unknown_strategy_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown conflict resolution strategy"):
        SyncServer(store=InMemoryServerStore(), accessors=DOCUMENT_ACCESSORS, conflict_strategy="coinFlip")


def test_last_updated_requires_timestamp_accessor() -> None:
    accessors: EntityAccessors[Document, str] = EntityAccessors(
        key=lambda document: document.key,
        are_equal=lambda first, second: first.body == second.body,
    )

    with pytest.raises(ValueError, match="last_updated"):
        SyncServer(
            store=InMemoryServerStore(),
            accessors=accessors,
            conflict_strategy=ConflictStrategy.LAST_UPDATED,
        )


def test_naive_checkpoint_is_rejected(clock: StepClock) -> None:
    with pytest.raises(ValueError, match="timezone"):
        asyncio.run(_server(InMemoryServerStore(), clock).sync([], datetime(2024, 1, 1)))  # noqa: DTZ001


def test_resolve_conflict_applies_unchallenged_decision(clock: StepClock) -> None:
    store = InMemoryServerStore([make_document("a", {"text": "server"}, synced_at=T1)])
    decided = make_document("a", {"text": "decided"}, updated_at=T2, synced_at=T1)

    outcome = asyncio.run(_server(store, clock).resolve_conflict(decided, T1))

    assert outcome.resolved
    [row] = store.rows
    assert row.body == {"text": "decided"}
    assert row.synced_at == outcome.sync_stamp


def test_resolve_conflict_reports_newer_server_version(clock: StepClock) -> None:
    store = InMemoryServerStore([make_document("a", {"text": "again"}, synced_at=T2)])
    decided = make_document("a", {"text": "decided"}, synced_at=T1)

    outcome = asyncio.run(_server(store, clock).resolve_conflict(decided, T1))

    assert not outcome.resolved
    assert outcome.still_requiring_resolution is not None
    assert outcome.still_requiring_resolution.body == {"text": "again"}
    assert [row.body for row in store.rows] == [{"text": "again"}]


def test_resolve_conflict_rolls_back_on_failure(clock: StepClock) -> None:
    boom = RuntimeError("locked")
    transaction = RecordingTransaction()
    server = SyncServer(
        store=_FailingUpdateStore(boom, [make_document("a", synced_at=T0)]),
        accessors=DOCUMENT_ACCESSORS,
        transaction=transaction.hooks(),
        clock=clock,
    )

    with pytest.raises(RuntimeError) as exc:
        asyncio.run(server.resolve_conflict(make_document("a", {"text": "x"}), T1))

    assert exc.value is boom
    assert transaction.calls == ["start", "rollback"]


def test_aware_checkpoints_in_other_zones_are_normalised(clock: StepClock) -> None:
    store = InMemoryServerStore([make_document("a", synced_at=T1)])
    same_instant = T1.astimezone(timezone(timedelta(hours=2)))

    result = asyncio.run(_server(store, clock).sync([], same_instant))

    assert result.is_empty


@pytest.mark.parametrize(
    "failing_call",
    ["get_entities", "get_entities_synced_since", "update_entity", "create_entity"],
)
def test_failure_in_any_store_call_rolls_back_once(clock: StepClock, failing_call: str) -> None:
    boom = RuntimeError(f"{failing_call} failed")
    store = InMemoryServerStore([make_document("a", synced_at=T0)])

    async def fail(*args: object) -> None:
        raise boom

    setattr(store, failing_call, fail)
    transaction = RecordingTransaction()
    server = SyncServer(
        store=store,
        accessors=DOCUMENT_ACCESSORS,
        transaction=transaction.hooks(),
        clock=clock,
    )

    with pytest.raises(RuntimeError) as exc:
        asyncio.run(server.sync([make_document("new"), make_document("a", {"text": "edit"})], T0))

    assert exc.value is boom
    assert transaction.calls == ["start", "rollback"]


class _HangingStore(InMemoryServerStore):
    async def get_entities(self, keys: Sequence[str]) -> list[Document]:
        await asyncio.Event().wait()
        return []


def test_cancelled_round_rolls_back(clock: StepClock) -> None:
    transaction = RecordingTransaction()
    server = SyncServer(
        store=_HangingStore(),
        accessors=DOCUMENT_ACCESSORS,
        transaction=transaction.hooks(),
        clock=clock,
    )

    async def sync_with_deadline() -> None:
        await asyncio.wait_for(server.sync([make_document("a")], T0), timeout=0.05)

    with pytest.raises(TimeoutError):
        asyncio.run(sync_with_deadline())

    assert transaction.calls == ["start", "rollback"]


def test_round_summary_logs_bucket_counts(clock: StepClock, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="replisync.domain.reconciliation.engine"):
        asyncio.run(_server(InMemoryServerStore(), clock).sync([new_document()]))

    [summary] = [record for record in caplog.records if "Finished sync round" in record.msg]
    assert summary.args is not None
    assert tuple(summary.args)[1:] == (1, 0, 0)

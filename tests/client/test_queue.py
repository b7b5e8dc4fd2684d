"""Tests for the sync queue manager."""

from __future__ import annotations

import asyncio
import json

import pytest

from offlinesync.client.api import NetworkError, RemoteRejected
from offlinesync.client.store import MemoryKeyValueStore
from offlinesync.client.sync.conflict import (
    ConflictKind,
    ConflictRecord,
    ConflictResolver,
    ResolutionOutcome,
)
from offlinesync.client.sync.persistence import (
    PENDING_ACTIONS_KEY,
    SYNC_STATS_KEY,
    PendingActionStore,
)
from offlinesync.client.sync.queue import SyncQueueManager
from offlinesync.client.sync.types import (
    ActionKind,
    GiveUpPolicy,
    PendingAction,
    Priority,
    ResolutionStrategy,
    SyncOutcome,
    SyncReport,
    SyncTrigger,
)
from offlinesync.core.config import SyncConfig
from offlinesync.core.types import SyncPriorityFilter
from tests.client.fakes import FailingStore, FakeRemote


def make_manager(
    remote: FakeRemote,
    store: MemoryKeyValueStore | FailingStore | None = None,
    config: SyncConfig | None = None,
    resolver: ConflictResolver | None = None,
) -> SyncQueueManager:
    """Create a manager over an in-memory store."""
    return SyncQueueManager(
        remote,
        resolver or ConflictResolver(),
        PendingActionStore(store if store is not None else MemoryKeyValueStore()),
        config=config,
    )


@pytest.fixture
def remote() -> FakeRemote:
    """Create a fake remote service."""
    return FakeRemote()


class TestEnqueue:
    """Tests for SyncQueueManager.enqueue."""

    @pytest.mark.asyncio
    async def test_enqueue_persists(self, remote: FakeRemote) -> None:
        """Enqueued actions should be written to the store."""
        store = MemoryKeyValueStore()
        manager = make_manager(remote, store)

        action_id = await manager.enqueue(ActionKind.CREATE, "collection", {"name": "Bottles"})

        records = json.loads(await store.get(PENDING_ACTIONS_KEY) or "[]")
        assert [r["id"] for r in records] == [action_id]
        assert action_id.startswith("action_")

    @pytest.mark.asyncio
    async def test_default_priority_from_entity_type(self, remote: FakeRemote) -> None:
        """Priority should default from the entity type."""
        manager = make_manager(remote)

        await manager.enqueue(ActionKind.CREATE, "feedback", {})
        await manager.enqueue(ActionKind.CREATE, "order", {})

        assert [a.priority for a in manager.pending_actions] == [Priority.HIGH, Priority.LOW]

    @pytest.mark.asyncio
    async def test_explicit_priority_and_budget(self, remote: FakeRemote) -> None:
        """Explicit priority and retry budget should be kept."""
        manager = make_manager(remote, config=SyncConfig(max_retries=7))

        await manager.enqueue(ActionKind.CREATE, "order", {}, priority=Priority.LOW)
        await manager.enqueue(ActionKind.CREATE, "order", {}, max_retries=1)

        budgets = sorted(a.max_retries for a in manager.pending_actions)
        assert budgets == [1, 7]
        assert manager.pending_actions[-1].priority == Priority.LOW

    @pytest.mark.asyncio
    async def test_update_without_id_rejected(self, remote: FakeRemote) -> None:
        """Update without entity_id should raise and queue nothing."""
        manager = make_manager(remote)

        with pytest.raises(ValueError):
            await manager.enqueue(ActionKind.UPDATE, "order", {"status": "paid"})

        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_enqueue_survives_store_failure(self, remote: FakeRemote) -> None:
        """A failed write should keep the action in memory."""
        store = FailingStore()
        store.broken = True
        manager = make_manager(remote, store)

        await manager.enqueue(ActionKind.CREATE, "order", {})

        assert len(manager) == 1

    @pytest.mark.asyncio
    async def test_on_enqueued_fires_when_online_and_idle(self, remote: FakeRemote) -> None:
        """The enqueue hook should fire only while online."""
        manager = make_manager(remote)
        calls: list[int] = []
        manager.set_on_enqueued(lambda: calls.append(1))

        await manager.enqueue(ActionKind.CREATE, "order", {})
        manager.connected = False
        await manager.enqueue(ActionKind.CREATE, "order", {})

        assert calls == [1]


class TestStart:
    """Tests for loading persisted state."""

    @pytest.mark.asyncio
    async def test_start_loads_sorted_queue(self, remote: FakeRemote) -> None:
        """start() should restore the queue in processing order."""
        low = PendingAction(
            id="low", kind="create", entity_type="feedback", enqueued_at=1, priority="low"
        )
        high = PendingAction(
            id="high", kind="create", entity_type="order", enqueued_at=2, priority="high"
        )
        store = MemoryKeyValueStore(
            {PENDING_ACTIONS_KEY: json.dumps([low.to_dict(), high.to_dict()])}
        )
        manager = make_manager(remote, store)

        await manager.start()

        assert [a.id for a in manager.pending_actions] == ["high", "low"]


class TestRunSync:
    """Tests for sync cycles."""

    @pytest.mark.asyncio
    async def test_create_applied_and_removed(self, remote: FakeRemote) -> None:
        """A successful create should be removed from the queue."""
        store = MemoryKeyValueStore()
        manager = make_manager(remote, store)
        await manager.enqueue(ActionKind.CREATE, "collection", {"id": "c1", "name": "Cans"})

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.outcome == SyncOutcome.COMPLETED
        assert (report.processed, report.succeeded, report.failed) == (1, 1, 0)
        assert len(manager) == 0
        assert remote.entities[("collection", "c1")] == {"id": "c1", "name": "Cans"}
        assert json.loads(await store.get(PENDING_ACTIONS_KEY) or "") == []

    @pytest.mark.asyncio
    async def test_processing_order(self, remote: FakeRemote) -> None:
        """Actions should be applied by priority, then age."""
        manager = make_manager(remote)
        await manager.enqueue(ActionKind.CREATE, "feedback", {"id": "f1"})
        await manager.enqueue(ActionKind.CREATE, "impact", {"id": "i1"})
        await manager.enqueue(ActionKind.CREATE, "order", {"id": "o1"})
        await manager.enqueue(ActionKind.CREATE, "order", {"id": "o2"})

        await manager.run_sync(SyncTrigger.MANUAL)

        created = [(t, i) for op, t, i in remote.calls if op == "create"]
        assert created == [("order", "o1"), ("order", "o2"), ("impact", "i1"), ("feedback", "f1")]

    @pytest.mark.asyncio
    async def test_offline_skips(self, remote: FakeRemote) -> None:
        """No remote calls should be made while offline."""
        manager = make_manager(remote)
        await manager.enqueue(ActionKind.CREATE, "order", {})
        manager.connected = False

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.outcome == SyncOutcome.SKIPPED
        assert remote.calls == []
        assert len(manager) == 1

    @pytest.mark.asyncio
    async def test_no_concurrent_cycles(self, remote: FakeRemote) -> None:
        """A second cycle requested mid-cycle should be skipped."""
        manager = make_manager(remote)
        await manager.enqueue(ActionKind.CREATE, "order", {"id": "o1"})
        remote.gate = asyncio.Event()

        first = asyncio.create_task(manager.run_sync(SyncTrigger.MANUAL))
        await asyncio.sleep(0)
        assert manager.is_syncing

        second = await manager.run_sync(SyncTrigger.PERIODIC)
        remote.gate.set()
        first_report = await first

        assert second.outcome == SyncOutcome.SKIPPED
        assert first_report.outcome == SyncOutcome.COMPLETED
        assert len(remote.calls_for("create")) == 1
        assert not manager.is_syncing

    @pytest.mark.asyncio
    async def test_enqueue_during_cycle_waits(self, remote: FakeRemote) -> None:
        """Actions enqueued mid-cycle should wait for the next cycle."""
        manager = make_manager(remote)
        await manager.enqueue(ActionKind.CREATE, "order", {"id": "o1"})
        remote.gate = asyncio.Event()

        running = asyncio.create_task(manager.run_sync(SyncTrigger.MANUAL))
        await asyncio.sleep(0)
        late_id = await manager.enqueue(ActionKind.CREATE, "order", {"id": "o2"})
        remote.gate.set()
        report = await running

        assert report.processed == 1
        assert [a.id for a in manager.pending_actions] == [late_id]

    @pytest.mark.asyncio
    async def test_failure_does_not_abort_batch(self, remote: FakeRemote) -> None:
        """One failing action should not stop the others."""
        manager = make_manager(remote)
        await manager.enqueue(ActionKind.CREATE, "order", {"id": "o1"})
        await manager.enqueue(ActionKind.CREATE, "order", {"id": "o2"})
        remote.fail("create", NetworkError("timeout"))

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert (report.processed, report.succeeded, report.failed) == (2, 1, 1)
        assert report.outcome == SyncOutcome.COMPLETED
        [left] = manager.pending_actions
        assert left.retry_count == 1
        assert left.last_error == "NetworkError: timeout"

    @pytest.mark.asyncio
    async def test_query_action(self, remote: FakeRemote) -> None:
        """A query should refresh from the remote and be removed."""
        remote.seed("challenge", "ch1", {"id": "ch1"})
        manager = make_manager(remote)
        await manager.enqueue(ActionKind.QUERY, "challenge", entity_id="ch1")
        await manager.enqueue(ActionKind.QUERY, "challenge")

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.succeeded == 2
        assert remote.calls_for("get") == [("get", "challenge", "ch1"), ("get", "challenge", None)]
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_cycle_complete_callback(self, remote: FakeRemote) -> None:
        """The completion callback should receive the report; its errors are swallowed."""
        manager = make_manager(remote)
        reports: list[SyncReport] = []

        def callback(report: SyncReport) -> None:
            reports.append(report)
            raise RuntimeError("listener bug")

        manager.set_on_cycle_complete(callback)

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert reports == [report]

    @pytest.mark.asyncio
    async def test_high_only_filter(self, remote: FakeRemote) -> None:
        """With the high-only filter, lower priority actions should wait."""
        config = SyncConfig(sync_priority=SyncPriorityFilter.HIGH_ONLY)
        manager = make_manager(remote, config=config)
        await manager.enqueue(ActionKind.CREATE, "collection", {"id": "c1"})
        await manager.enqueue(ActionKind.CREATE, "feedback", {"id": "f1"})

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert (report.processed, report.succeeded) == (1, 1)
        assert ("collection", "c1") in remote.entities
        assert [a.entity_type for a in manager.pending_actions] == ["feedback"]


class TestDelete:
    """Tests for delete actions."""

    @pytest.mark.asyncio
    async def test_delete_applied(self, remote: FakeRemote) -> None:
        """A delete should remove the remote entity."""
        remote.seed("order", "o1", {"id": "o1"})
        manager = make_manager(remote)
        await manager.enqueue(ActionKind.DELETE, "order", entity_id="o1")

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.succeeded == 1
        assert ("order", "o1") not in remote.entities

    @pytest.mark.asyncio
    async def test_delete_missing_is_success(self, remote: FakeRemote) -> None:
        """Deleting an already deleted entity should succeed."""
        manager = make_manager(remote)
        await manager.enqueue(ActionKind.DELETE, "order", entity_id="gone")

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert (report.succeeded, report.failed) == (1, 0)
        assert len(manager) == 0


class TestUpdate:
    """Tests for update actions and conflict resolution."""

    @pytest.mark.asyncio
    async def test_impact_metrics_summed(self, remote: FakeRemote) -> None:
        """Concurrent impact updates should be summed."""
        remote.seed("impact", "imp-1", {"id": "imp-1", "plasticSaved": 3, "updatedAt": 1000})
        manager = make_manager(remote)
        await manager.enqueue(ActionKind.UPDATE, "impact", {"plasticSaved": 5}, entity_id="imp-1")

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.succeeded == 1
        assert remote.entities[("impact", "imp-1")]["plasticSaved"] == 8
        assert remote.entities[("impact", "imp-1")]["id"] == "imp-1"

    @pytest.mark.asyncio
    async def test_line_items_merged(self, remote: FakeRemote) -> None:
        """Order items should merge by id using per-item timestamps."""
        remote.seed(
            "order",
            "o1",
            {"id": "o1", "items": [{"id": "i1", "quantity": 2, "updatedAt": 1000}]},
        )
        manager = make_manager(remote)
        await manager.enqueue(
            ActionKind.UPDATE,
            "order",
            {"items": [{"id": "i1", "quantity": 5, "updatedAt": 2000}]},
            entity_id="o1",
        )

        await manager.run_sync(SyncTrigger.MANUAL)

        assert remote.entities[("order", "o1")]["items"] == [
            {"id": "i1", "quantity": 5, "updatedAt": 2000}
        ]

    @pytest.mark.asyncio
    async def test_update_strategy_configurable(self, remote: FakeRemote) -> None:
        """The update strategy should come from the configuration."""
        remote.seed("user", "u1", {"id": "u1", "name": "remote"})
        config = SyncConfig(update_strategy=ResolutionStrategy.REMOTE_WINS)
        manager = make_manager(remote, config=config)
        await manager.enqueue(ActionKind.UPDATE, "user", {"name": "local"}, entity_id="u1")

        await manager.run_sync(SyncTrigger.MANUAL)

        assert remote.entities[("user", "u1")] == {"id": "u1", "name": "remote"}

    @pytest.mark.asyncio
    async def test_remote_deleted_recreates(self, remote: FakeRemote) -> None:
        """An update whose entity is gone should be re-created by default."""
        manager = make_manager(remote)
        await manager.enqueue(
            ActionKind.UPDATE, "material", {"id": "m1", "name": "PET"}, entity_id="m1"
        )

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.succeeded == 1
        assert remote.entities[("material", "m1")] == {"id": "m1", "name": "PET"}
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_remote_deleted_discarded_by_strategy(self, remote: FakeRemote) -> None:
        """REMOTE_WINS for remote deletions should discard the update."""
        resolver = ConflictResolver()
        resolver.set_strategy_for_kind(
            ConflictKind.REMOTE_DELETED_LOCAL_MODIFIED, ResolutionStrategy.REMOTE_WINS
        )
        manager = make_manager(remote, resolver=resolver)
        await manager.enqueue(ActionKind.UPDATE, "material", {"name": "PET"}, entity_id="m1")

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.succeeded == 1
        assert remote.calls_for("create") == []
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_rejected_update_retried_without_conflict(self, remote: FakeRemote) -> None:
        """Non-404 update errors should consume a retry."""
        remote.seed("user", "u1", {"id": "u1"})
        remote.fail("update", RemoteRejected("invalid", 422))
        manager = make_manager(remote)
        await manager.enqueue(ActionKind.UPDATE, "user", {"name": "x"}, entity_id="u1")

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.failed == 1
        assert manager.pending_actions[0].retry_count == 1

    @pytest.mark.asyncio
    async def test_update_without_payload_rejected(self, remote: FakeRemote) -> None:
        """An update with no data should never reach the server."""
        remote.seed("order", "o1", {"id": "o1", "updatedAt": 1000})
        manager = make_manager(remote)

        with pytest.raises(ValueError, match="payload"):
            await manager.enqueue(ActionKind.UPDATE, "order", None, entity_id="o1")

        await manager.run_sync(SyncTrigger.MANUAL)
        assert ("order", "o1") in remote.entities
        assert remote.calls_for("delete") == []

    @pytest.mark.asyncio
    async def test_empty_remote_body_retried(self, remote: FakeRemote) -> None:
        """A fetch without data should be retried, not read as a deletion."""
        remote.seed("order", "o1", None)
        manager = make_manager(remote)
        await manager.enqueue(ActionKind.UPDATE, "order", {"status": "paid"}, entity_id="o1")

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.failed == 1
        assert ("order", "o1") in remote.entities
        assert remote.calls_for("delete") == []
        assert remote.calls_for("update") == []
        [action] = manager.pending_actions
        assert action.retry_count == 1
        assert action.last_error is not None
        assert "no data" in action.last_error

    @pytest.mark.asyncio
    async def test_resolution_to_delete_skips_write(self, remote: FakeRemote) -> None:
        """A resolution asking for deletion should not delete the remote entity."""
        remote.seed("user", "u1", {"id": "u1", "name": "remote"})

        def discard(
            conflict: ConflictRecord[dict[str, str]],
        ) -> ResolutionOutcome[dict[str, str]]:
            return ResolutionOutcome(None, True, ResolutionStrategy.MANUAL)

        resolver = ConflictResolver()
        resolver.register_manual_resolver(discard)
        config = SyncConfig(update_strategy=ResolutionStrategy.MANUAL)
        manager = make_manager(remote, config=config, resolver=resolver)
        await manager.enqueue(ActionKind.UPDATE, "user", {"name": "local"}, entity_id="u1")

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.succeeded == 1
        assert remote.entities[("user", "u1")] == {"id": "u1", "name": "remote"}
        assert remote.calls_for("delete") == []
        assert remote.calls_for("update") == []

    @pytest.mark.asyncio
    async def test_matching_base_version_writes_local(self, remote: FakeRemote) -> None:
        """An edit made against the current version should be written as is."""
        remote.seed("impact", "imp-1", {"id": "imp-1", "plasticSaved": 5, "version": 3})
        manager = make_manager(remote)
        payload = {"id": "imp-1", "plasticSaved": 6, "baseVersion": 3}
        await manager.enqueue(ActionKind.UPDATE, "impact", payload, entity_id="imp-1")

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.succeeded == 1
        assert remote.entities[("impact", "imp-1")] == payload

    @pytest.mark.asyncio
    async def test_stale_base_version_merges(self, remote: FakeRemote) -> None:
        """An edit made against an older version should go through conflict resolution."""
        remote.seed("impact", "imp-1", {"id": "imp-1", "plasticSaved": 5, "version": 4})
        manager = make_manager(remote)
        await manager.enqueue(
            ActionKind.UPDATE,
            "impact",
            {"plasticSaved": 6, "baseVersion": 3},
            entity_id="imp-1",
        )

        await manager.run_sync(SyncTrigger.MANUAL)

        assert remote.entities[("impact", "imp-1")]["plasticSaved"] == 11


class TestRetryBudget:
    """Tests for bounded retries."""

    @pytest.mark.asyncio
    async def test_gives_up_once_then_never_retried(self, remote: FakeRemote) -> None:
        """An always-failing action should be attempted max_retries times."""
        remote.fail("create", NetworkError("offline"), times=None)
        manager = make_manager(remote)
        await manager.enqueue(ActionKind.CREATE, "order", {"id": "o1"}, max_retries=3)

        reports = [await manager.run_sync(SyncTrigger.PERIODIC) for _ in range(6)]

        assert len(remote.calls_for("create")) == 3
        assert [r.gave_up for r in reports] == [0, 0, 1, 0, 0, 0]
        [action] = manager.pending_actions
        assert action.is_exhausted
        assert action.priority == Priority.LOW

    @pytest.mark.asyncio
    async def test_drop_policy_removes(self, remote: FakeRemote) -> None:
        """With DROP, an exhausted action should leave the queue."""
        remote.fail("create", NetworkError("offline"), times=None)
        manager = make_manager(remote, config=SyncConfig(give_up_policy=GiveUpPolicy.DROP))
        await manager.enqueue(ActionKind.CREATE, "order", {}, max_retries=1)

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.gave_up == 1
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_requeue_gives_new_budget(self, remote: FakeRemote) -> None:
        """A requeued action should be attempted again."""
        remote.fail("create", NetworkError("offline"))
        manager = make_manager(remote)
        action_id = await manager.enqueue(ActionKind.CREATE, "order", {"id": "o1"}, max_retries=1)
        await manager.run_sync(SyncTrigger.MANUAL)

        assert await manager.requeue(action_id)
        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.succeeded == 1
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_requeue_unknown(self, remote: FakeRemote) -> None:
        """Requeueing an unknown id should return False."""
        assert not await make_manager(remote).requeue("nope")

    @pytest.mark.asyncio
    async def test_single_attempt_budget(self, remote: FakeRemote) -> None:
        """A budget of one should still make exactly one attempt."""
        remote.fail("create", NetworkError("offline"), times=None)
        config = SyncConfig(max_retries=1, give_up_policy=GiveUpPolicy.DROP)
        manager = make_manager(remote, config=config)
        await manager.enqueue(ActionKind.CREATE, "order", {"id": "o1"})

        reports = [await manager.run_sync(SyncTrigger.PERIODIC) for _ in range(3)]

        assert len(remote.calls_for("create")) == 1
        assert [r.processed for r in reports] == [1, 0, 0]
        assert [r.gave_up for r in reports] == [1, 0, 0]
        assert len(manager) == 0

    @pytest.mark.asyncio
    async def test_zero_budget_rejected(self, remote: FakeRemote) -> None:
        """An action that could never be attempted should not be queued."""
        manager = make_manager(remote)

        with pytest.raises(ValueError, match="max_retries"):
            await manager.enqueue(ActionKind.CREATE, "order", {}, max_retries=0)

        assert len(manager) == 0


class TestPersistenceFailure:
    """Tests for persistence failures during a cycle."""

    @pytest.mark.asyncio
    async def test_failed_save_reports_failed(self, remote: FakeRemote) -> None:
        """A failed queue save should fail the cycle but keep the queue in memory."""
        store = FailingStore()
        remote.fail("create", NetworkError("timeout"))
        manager = make_manager(remote, store)
        await manager.enqueue(ActionKind.CREATE, "order", {})
        store.broken = True

        report = await manager.run_sync(SyncTrigger.MANUAL)

        assert report.outcome == SyncOutcome.FAILED
        assert report.error is not None
        assert len(manager) == 1
        assert manager.pending_actions[0].retry_count == 1
        assert not manager.is_syncing


class TestStats:
    """Tests for statistics recorded by cycles."""

    @pytest.mark.asyncio
    async def test_stats_persisted(self, remote: FakeRemote) -> None:
        """Each cycle should update and persist statistics."""
        store = MemoryKeyValueStore()
        manager = make_manager(remote, store)
        await manager.enqueue(ActionKind.CREATE, "order", {})
        await manager.enqueue(ActionKind.CREATE, "order", {})
        remote.fail("create", NetworkError("timeout"))

        await manager.run_sync(SyncTrigger.MANUAL)

        stats = json.loads(await store.get(SYNC_STATS_KEY) or "{}")
        assert stats["totalSyncs"] == 1
        assert stats["successfulSyncs"] == 1
        assert stats["failedSyncs"] == 1
        assert stats["operationsProcessed"] == 2
        assert stats["operationsFailed"] == 1
        assert stats["pendingActions"] == 1

    @pytest.mark.asyncio
    async def test_skipped_cycle_not_counted(self, remote: FakeRemote) -> None:
        """Skipped cycles should not be counted."""
        manager = make_manager(remote)
        manager.connected = False

        await manager.run_sync(SyncTrigger.MANUAL)

        assert manager.stats.snapshot().total_syncs == 0


class TestQueueAccessors:
    """Tests for remove, clear and counts."""

    @pytest.mark.asyncio
    async def test_counts_remove_clear(self, remote: FakeRemote) -> None:
        """Accessors should reflect queue content."""
        manager = make_manager(remote)
        first = await manager.enqueue(ActionKind.CREATE, "order", {})
        await manager.enqueue(ActionKind.CREATE, "order", {})
        await manager.enqueue(ActionKind.CREATE, "impact", {})

        assert manager.counts_by_entity_type() == {"order": 2, "impact": 1}
        assert await manager.remove(first)
        assert not await manager.remove(first)
        assert manager.get_action(first) is None
        assert await manager.clear() == 2
        assert manager.pending_actions == []

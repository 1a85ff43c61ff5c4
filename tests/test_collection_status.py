"""Tests for the collector-result Status Transition Guard (SQLite-backed)."""

import asyncio
import logging

import pytest

from brandpulse.models.collector_result import CollectorResult
from brandpulse.services.collection_status import (
    CollectorResultNotFoundError,
    CollectorResultStatus,
    SqlCollectorResultStore,
    StatusTransitionGuard,
    TransitionContext,
    is_terminal,
)

WEBHOOK = TransitionContext(source="webhook", reason="provider callback", execution_id="exec-1")
POLLER = TransitionContext(source="poller")


async def _seed(session_factory, **overrides) -> int:
    values = {
        "customer_id": "cust-1",
        "brand_id": "brand-1",
        "execution_id": "exec-1",
        "collector_type": "chatgpt",
        "status": CollectorResultStatus.PENDING.value,
    }
    values.update(overrides)
    async with session_factory() as session:
        row = CollectorResult(**values)
        session.add(row)
        await session.commit()
        return row.id


async def _load(session_factory, collector_result_id: int) -> CollectorResult:
    async with session_factory() as session:
        return await session.get(CollectorResult, collector_result_id)


@pytest.fixture
def guard(session_factory):
    return StatusTransitionGuard(SqlCollectorResultStore(session_factory))


class TestIsTerminal:
    def test_terminal_statuses(self):
        assert is_terminal("completed")
        assert is_terminal("failed")

    def test_non_terminal(self):
        for status in ("pending", "processing", "running", "failed_retry", None, "paused"):
            assert not is_terminal(status)


class TestTransition:
    async def test_pending_to_processing(self, guard, session_factory):
        row_id = await _seed(session_factory)

        outcome = await guard.transition(row_id, CollectorResultStatus.PROCESSING, WEBHOOK)

        assert outcome.updated
        assert outcome.from_status == "pending"
        assert outcome.to_status == "processing"
        row = await _load(session_factory, row_id)
        assert row.status == "processing"
        assert row.updated_at is not None
        entry = row.metadata_["status_transitions"][0]
        assert entry["from"] == "pending"
        assert entry["to"] == "processing"
        assert entry["source"] == "webhook"
        assert entry["reason"] == "provider callback"
        assert entry["execution_id"] == "exec-1"
        assert "at" in entry
        assert "brand_id" not in entry
        assert row.metadata_["last_status_transition"] == entry

    async def test_log_records_carry_execution(self, guard, session_factory, caplog):
        row_id = await _seed(session_factory)
        context = TransitionContext(source="webhook", brand_id="brand-1", execution_id="exec-1")

        with caplog.at_level(logging.INFO, logger="brandpulse.services.collection_status"):
            await guard.transition(row_id, CollectorResultStatus.PROCESSING, context)

        record = [r for r in caplog.records if r.name == "brandpulse.services.collection_status"][-1]
        assert record.collector_result_id == row_id
        assert record.execution_id == "exec-1"
        assert record.brand_id == "brand-1"

    async def test_complete_with_answer(self, guard, session_factory):
        row_id = await _seed(session_factory, status="processing")

        outcome = await guard.transition(row_id, "completed", WEBHOOK, {"raw_answer": "Acme is great."})

        assert outcome.updated
        row = await _load(session_factory, row_id)
        assert row.status == "completed"
        assert row.raw_answer == "Acme is great."

    async def test_complete_with_stored_answer(self, guard, session_factory):
        row_id = await _seed(session_factory, status="running", raw_answer="Stored answer.")

        outcome = await guard.transition(row_id, CollectorResultStatus.COMPLETED, POLLER)

        assert outcome.to_status == "completed"
        assert (await _load(session_factory, row_id)).status == "completed"

    async def test_complete_without_answer_stays_processing(self, guard, session_factory):
        row_id = await _seed(session_factory, status="running")

        outcome = await guard.transition(row_id, CollectorResultStatus.COMPLETED, POLLER, {"raw_answer": "   "})

        assert outcome.updated
        assert outcome.to_status == "processing"
        assert (await _load(session_factory, row_id)).status == "processing"

    @pytest.mark.parametrize("terminal", ["completed", "failed"])
    async def test_terminal_rows_never_reopen(self, guard, session_factory, terminal):
        row_id = await _seed(session_factory, status=terminal, raw_answer="done")

        outcome = await guard.transition(row_id, CollectorResultStatus.PROCESSING, POLLER)

        assert not outcome.updated
        assert outcome.skipped_terminal
        row = await _load(session_factory, row_id)
        assert row.status == terminal
        assert row.metadata_ is None

    async def test_null_status_row(self, guard, session_factory):
        row_id = await _seed(session_factory, status=None)

        outcome = await guard.transition(row_id, CollectorResultStatus.RUNNING, POLLER)

        assert outcome.updated
        assert outcome.from_status is None
        assert (await _load(session_factory, row_id)).status == "running"

    async def test_metadata_merged_and_history_appended(self, guard, session_factory):
        row_id = await _seed(session_factory, metadata_={"snapshot_id": "s-1"})

        await guard.transition(row_id, "processing", WEBHOOK, {"metadata": {"attempt": 2}})
        await guard.transition(row_id, "failed_retry", POLLER)

        metadata = (await _load(session_factory, row_id)).metadata_
        assert metadata["snapshot_id"] == "s-1"
        assert metadata["attempt"] == 2
        assert [e["to"] for e in metadata["status_transitions"]] == ["processing", "failed_retry"]
        assert metadata["last_status_transition"]["source"] == "poller"

    async def test_missing_row_raises(self, guard):
        with pytest.raises(CollectorResultNotFoundError):
            await guard.transition(9999, "processing", POLLER)

    async def test_unwritable_field_rejected(self, guard, session_factory):
        row_id = await _seed(session_factory)

        with pytest.raises(ValueError, match="status"):
            await guard.transition(row_id, "processing", POLLER, {"status": "completed"})

        assert (await _load(session_factory, row_id)).status == "pending"


class TestTransitionByExecution:
    async def test_latest_row_is_transitioned(self, guard, session_factory):
        older = await _seed(session_factory)
        newer = await _seed(session_factory)

        outcome = await guard.transition_by_execution("exec-1", "chatgpt", "processing", WEBHOOK)

        assert outcome.collector_result_id == newer
        assert (await _load(session_factory, older)).status == "pending"
        assert (await _load(session_factory, newer)).status == "processing"

    async def test_missing_execution_reports_not_updated(self, guard):
        outcome = await guard.transition_by_execution("nope", "chatgpt", "processing", WEBHOOK)
        assert not outcome.updated
        assert outcome.collector_result_id is None


class TestCompareAndSet:
    async def test_stale_expected_status_is_rejected(self, session_factory):
        row_id = await _seed(session_factory, status="processing")
        store = SqlCollectorResultStore(session_factory)

        assert not await store.compare_and_set(row_id, "pending", {"status": "running"})
        assert (await _load(session_factory, row_id)).status == "processing"

    async def test_terminal_row_cannot_be_written(self, session_factory):
        row_id = await _seed(session_factory, status="completed")
        store = SqlCollectorResultStore(session_factory)

        assert not await store.compare_and_set(row_id, "completed", {"status": "processing"})


class _LockstepStore(SqlCollectorResultStore):
    """Holds every reader until all of them have read, so their writes race."""

    def __init__(self, session_factory, parties: int):
        super().__init__(session_factory)
        self.parties = parties
        self._arrived = 0
        self._all_read = asyncio.Event()

    async def fetch_by_id(self, collector_result_id):
        snapshot = await super().fetch_by_id(collector_result_id)
        self._arrived += 1
        if self._arrived >= self.parties:
            self._all_read.set()
        await self._all_read.wait()
        return snapshot


class TestConcurrentWriters:
    async def test_exactly_one_writer_wins(self, session_factory):
        row_id = await _seed(session_factory, status="processing")
        guard = StatusTransitionGuard(_LockstepStore(session_factory, parties=2))

        outcomes = await asyncio.gather(
            guard.transition(row_id, "completed", WEBHOOK, {"raw_answer": "Acme is great."}),
            guard.transition(row_id, "failed", POLLER),
        )

        assert sorted(o.updated for o in outcomes) == [False, True]
        winner = next(o for o in outcomes if o.updated)
        row = await _load(session_factory, row_id)
        assert row.status == winner.to_status
        assert len(row.metadata_["status_transitions"]) == 1

"""Status Transition Guard for collector results.

Every status write is a compare-and-set against the status that was read:

    UPDATE collector_results SET ...
    WHERE id = :id AND status = :previous AND status NOT IN ('completed', 'failed')

so concurrent writers (webhook, poller, retry worker) cannot overwrite each
other or reopen a terminal row. Zero affected rows is a normal outcome
(``updated=False``), not an error. Each successful write appends an audit
entry to ``metadata.status_transitions``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from brandpulse.core.metrics import STATUS_TRANSITIONS
from brandpulse.models.collector_result import CollectorResult

logger = logging.getLogger(__name__)


class CollectorResultStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    RUNNING = "running"
    FAILED_RETRY = "failed_retry"
    COMPLETED = "completed"  # terminal
    FAILED = "failed"  # terminal


TERMINAL_STATUSES = frozenset({CollectorResultStatus.COMPLETED.value, CollectorResultStatus.FAILED.value})

# Columns a transition may write alongside status
WRITABLE_FIELDS = frozenset({"raw_answer", "metadata", "brand", "competitors", "question"})


def is_terminal(status: str | None) -> bool:
    """Unknown status strings are treated as non-terminal."""
    return status in TERMINAL_STATUSES


class CollectorResultNotFoundError(LookupError):
    def __init__(self, collector_result_id: int):
        super().__init__(f"Collector result {collector_result_id} not found")
        self.collector_result_id = collector_result_id


@dataclass(frozen=True)
class TransitionContext:
    """Who is transitioning and why; recorded in the audit entry."""

    source: str  # e.g. "webhook", "poller", "retry_worker"
    reason: str | None = None
    brand_id: str | None = None
    customer_id: str | None = None
    execution_id: str | None = None
    collector_type: str | None = None
    snapshot_id: str | None = None

    def audit_fields(self) -> dict[str, Any]:
        fields = {
            "reason": self.reason,
            "brand_id": self.brand_id,
            "customer_id": self.customer_id,
            "execution_id": self.execution_id,
            "collector_type": self.collector_type,
            "snapshot_id": self.snapshot_id,
        }
        return {k: v for k, v in fields.items() if v is not None}


@dataclass(frozen=True)
class TransitionOutcome:
    updated: bool
    skipped_terminal: bool = False
    collector_result_id: int | None = None
    from_status: str | None = None
    to_status: str | None = None


@dataclass(frozen=True)
class CollectorResultSnapshot:
    id: int
    status: str | None
    metadata: dict[str, Any]
    raw_answer: str | None


class CollectorResultStore(Protocol):
    """Persistence operations the guard needs."""

    async def fetch_by_id(self, collector_result_id: int) -> CollectorResultSnapshot | None: ...

    async def fetch_latest_by_execution(
        self, execution_id: str, collector_type: str
    ) -> CollectorResultSnapshot | None: ...

    async def compare_and_set(self, collector_result_id: int, expected_status: str | None, values: dict[str, Any]) -> bool: ...


# ---------------------------------------------------------------------------
# SQLAlchemy store
# ---------------------------------------------------------------------------


def _snapshot(row: CollectorResult) -> CollectorResultSnapshot:
    return CollectorResultSnapshot(
        id=row.id,
        status=row.status,
        metadata=dict(row.metadata_ or {}),
        raw_answer=row.raw_answer,
    )


class SqlCollectorResultStore:
    """One short-lived session per operation; the row is the only arbiter."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def fetch_by_id(self, collector_result_id: int) -> CollectorResultSnapshot | None:
        async with self.session_factory() as session:
            row = await session.get(CollectorResult, collector_result_id)
            return _snapshot(row) if row else None

    async def fetch_latest_by_execution(self, execution_id: str, collector_type: str) -> CollectorResultSnapshot | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(CollectorResult)
                .where(
                    CollectorResult.execution_id == execution_id,
                    CollectorResult.collector_type == collector_type,
                )
                .order_by(CollectorResult.id.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
            return _snapshot(row) if row else None

    async def compare_and_set(self, collector_result_id: int, expected_status: str | None, values: dict[str, Any]) -> bool:
        table = CollectorResult.__table__
        status_col = table.c.status
        expected = status_col.is_(None) if expected_status is None else status_col == expected_status
        stmt = (
            update(table)
            .where(
                table.c.id == collector_result_id,
                expected,
                # NULL NOT IN (...) is NULL, so NULL status needs its own branch
                or_(status_col.is_(None), status_col.not_in(sorted(TERMINAL_STATUSES))),
            )
            .values(values)
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------


def _has_payload(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


class StatusTransitionGuard:
    def __init__(self, store: CollectorResultStore):
        self.store = store

    async def transition(
        self,
        collector_result_id: int,
        to_status: CollectorResultStatus | str,
        context: TransitionContext,
        fields: dict[str, Any] | None = None,
    ) -> TransitionOutcome:
        """Move one collector result to ``to_status`` if nobody else got there first.

        Raises:
            CollectorResultNotFoundError: no row with this id.
            ValueError: ``fields`` names a column transitions may not write.
        """
        snapshot = await self.store.fetch_by_id(collector_result_id)
        if snapshot is None:
            STATUS_TRANSITIONS.labels(outcome="not_found").inc()
            raise CollectorResultNotFoundError(collector_result_id)
        return await self._apply(snapshot, to_status, context, fields or {})

    async def transition_by_execution(
        self,
        execution_id: str,
        collector_type: str,
        to_status: CollectorResultStatus | str,
        context: TransitionContext,
        fields: dict[str, Any] | None = None,
    ) -> TransitionOutcome:
        """Same as transition() for the latest row of an execution/collector pair.

        A missing row is reported as ``updated=False``.
        """
        snapshot = await self.store.fetch_latest_by_execution(execution_id, collector_type)
        if snapshot is None:
            STATUS_TRANSITIONS.labels(outcome="not_found").inc()
            logger.info("No collector result for execution=%s collector=%s", execution_id, collector_type)
            return TransitionOutcome(updated=False)
        return await self._apply(snapshot, to_status, context, fields or {})

    async def _apply(
        self,
        snapshot: CollectorResultSnapshot,
        to_status: CollectorResultStatus | str,
        context: TransitionContext,
        fields: dict[str, Any],
    ) -> TransitionOutcome:
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not writable by a status transition: {sorted(unknown)}")

        target = to_status.value if isinstance(to_status, CollectorResultStatus) else str(to_status)
        previous = snapshot.status
        log_extra = {
            "collector_result_id": snapshot.id,
            "execution_id": context.execution_id,
            "brand_id": context.brand_id,
        }

        if is_terminal(previous):
            STATUS_TRANSITIONS.labels(outcome="skipped_terminal").inc()
            logger.debug(
                "Collector result %d already %s, not moving to %s", snapshot.id, previous, target, extra=log_extra
            )
            return TransitionOutcome(
                updated=False,
                skipped_terminal=True,
                collector_result_id=snapshot.id,
                from_status=previous,
                to_status=target,
            )

        if target == CollectorResultStatus.COMPLETED.value and not (
            _has_payload(fields.get("raw_answer")) or _has_payload(snapshot.raw_answer)
        ):
            logger.warning(
                "Collector result %d marked completed without an answer, keeping it in processing (source=%s)",
                snapshot.id,
                context.source,
                extra=log_extra,
            )
            target = CollectorResultStatus.PROCESSING.value

        now = datetime.now(timezone.utc)
        entry = {"from": previous, "to": target, "at": now.isoformat(), "source": context.source}
        entry.update(context.audit_fields())

        metadata = dict(snapshot.metadata)
        incoming = fields.get("metadata")
        if isinstance(incoming, dict):
            metadata.update(incoming)
        history = metadata.get("status_transitions")
        metadata["status_transitions"] = [*(history if isinstance(history, list) else []), entry]
        metadata["last_status_transition"] = entry

        values = {**fields, "status": target, "metadata": metadata, "updated_at": now}
        updated = await self.store.compare_and_set(snapshot.id, previous, values)

        STATUS_TRANSITIONS.labels(outcome="updated" if updated else "conflict").inc()
        if updated:
            logger.info(
                "Collector result %d: %s -> %s (source=%s)",
                snapshot.id,
                previous,
                target,
                context.source,
                extra=log_extra,
            )
        else:
            logger.info(
                "Collector result %d changed concurrently, %s -> %s not applied",
                snapshot.id,
                previous,
                target,
                extra=log_extra,
            )
        return TransitionOutcome(
            updated=updated,
            collector_result_id=snapshot.id,
            from_status=previous,
            to_status=target,
        )

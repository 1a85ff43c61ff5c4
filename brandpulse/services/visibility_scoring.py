"""Batch visibility scoring of collected answers.

Three phases per batch:
  1. Load unscored completed collector results and resolve brand/competitor aliases
  2. Score answers concurrently (semaphore-bounded LLM counting)
  3. Upsert all score rows in one session

One answer's failure never aborts the batch. Database errors propagate.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import and_, exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from brandpulse.analysis.alias_matcher import aliases_from_metadata
from brandpulse.analysis.hybrid_scorer import HybridScoringOrchestrator
from brandpulse.analysis.types import (
    AnswerContext,
    BrandSpec,
    CompetitorSpec,
    MentionCountingError,
    ScoreRow,
    UnscoreableAnswerError,
)
from brandpulse.core.metrics import ANSWERS_SCORED
from brandpulse.models.brand import Brand, BrandCompetitor
from brandpulse.models.collector_result import CollectorResult
from brandpulse.models.score import Score
from brandpulse.services.collection_status import CollectorResultStatus
from brandpulse.services.score_store import ScoreRepository

logger = logging.getLogger(__name__)


@dataclass
class ScoringBatchResult:
    """Outcome of one scoring batch."""

    scored: int = 0
    rows_upserted: int = 0
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scored": self.scored,
            "rows_upserted": self.rows_upserted,
            "skipped": len(self.skipped),
            "errors": self.errors,
        }


@dataclass
class _ScoringJob:
    collector_result_id: int
    context: AnswerContext
    brand: BrandSpec
    competitors: list[CompetitorSpec]
    raw_answer: str


def _competitor_names(raw: Any) -> list[str]:
    """Names from a stored competitors list of strings or {name|competitor_name} objects."""
    if not isinstance(raw, list):
        return []
    names: list[str] = []
    for item in raw:
        if isinstance(item, str):
            name = item
        elif isinstance(item, dict):
            name = item.get("name") or item.get("competitor_name") or ""
        else:
            continue
        name = name.strip() if isinstance(name, str) else ""
        if name and name.lower() not in {n.lower() for n in names}:
            names.append(name)
    return names


class VisibilityScoringService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        orchestrator: HybridScoringOrchestrator,
        *,
        batch_size: int = 50,
        concurrency: int = 5,
        repository: ScoreRepository | None = None,
    ):
        self.session_factory = session_factory
        self.orchestrator = orchestrator
        self.batch_size = batch_size
        self.concurrency = concurrency
        self.repository = repository or ScoreRepository()

    async def score_pending(self) -> ScoringBatchResult:
        """Score every completed, not-yet-scored collector result in one batch."""
        result = ScoringBatchResult()

        async with self.session_factory() as session:
            rows = await self._fetch_unscored(session)
            if not rows:
                logger.info("No unscored collector results")
                return result
            jobs = await self._build_jobs(session, rows)

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _run(job: _ScoringJob) -> tuple[_ScoringJob, list[ScoreRow] | None]:
            log_extra = {
                "collector_result_id": job.collector_result_id,
                "execution_id": job.context.execution_id,
                "brand_id": job.context.brand_id,
            }
            async with semaphore:
                try:
                    return job, await self.orchestrator.score_answer(
                        job.context, job.brand, job.competitors, job.raw_answer
                    )
                except UnscoreableAnswerError as e:
                    ANSWERS_SCORED.labels(outcome="skipped").inc()
                    logger.info("Skipping collector result %d: %s", job.collector_result_id, e.reason, extra=log_extra)
                    result.skipped.append(f"{job.collector_result_id}: {e.reason}")
                except MentionCountingError as e:
                    ANSWERS_SCORED.labels(outcome="failed").inc()
                    logger.error("Collector result %d: %s", job.collector_result_id, e, extra=log_extra)
                    result.errors.append(f"{job.collector_result_id}: {e}")
                except Exception as e:
                    ANSWERS_SCORED.labels(outcome="failed").inc()
                    logger.exception(
                        "Unexpected error scoring collector result %d", job.collector_result_id, extra=log_extra
                    )
                    result.errors.append(f"{job.collector_result_id}: {type(e).__name__}: {e}")
                return job, None

        outcomes = await asyncio.gather(*(_run(job) for job in jobs))

        async with self.session_factory() as session:
            # Oldest first so the newest answer owns a shared score key
            for job, score_rows in sorted(outcomes, key=lambda o: o[0].collector_result_id):
                if score_rows is None:
                    continue
                for row in score_rows:
                    await self.repository.upsert(session, row, collector_result_id=job.collector_result_id)
                result.scored += 1
                result.rows_upserted += len(score_rows)
                ANSWERS_SCORED.labels(outcome="scored").inc()
            await session.commit()

        logger.info(
            "Scoring batch: %d scored, %d rows, %d skipped, %d errors",
            result.scored,
            result.rows_upserted,
            len(result.skipped),
            len(result.errors),
        )
        return result

    async def _fetch_unscored(self, session: AsyncSession) -> list[CollectorResult]:
        # A score written for a newer answer to the same query supersedes this one
        already_scored = exists().where(
            or_(
                Score.collector_result_id == CollectorResult.id,
                and_(
                    Score.collector_result_id > CollectorResult.id,
                    Score.brand_id.is_not_distinct_from(CollectorResult.brand_id),
                    Score.query_id.is_not_distinct_from(CollectorResult.query_id),
                    Score.collector_type.is_not_distinct_from(CollectorResult.collector_type),
                ),
            )
        )
        stmt = (
            select(CollectorResult)
            .where(
                CollectorResult.status == CollectorResultStatus.COMPLETED.value,
                CollectorResult.raw_answer.is_not(None),
                CollectorResult.raw_answer != "",
                ~already_scored,
            )
            .order_by(CollectorResult.id.desc())
            .limit(self.batch_size)
        )
        return list((await session.execute(stmt)).scalars().all())

    async def _build_jobs(self, session: AsyncSession, rows: list[CollectorResult]) -> list[_ScoringJob]:
        brands: dict[str, Brand | None] = {}
        brand_competitors: dict[str, list[BrandCompetitor]] = {}
        jobs: list[_ScoringJob] = []

        for row in rows:
            brand_row: Brand | None = None
            configured: list[BrandCompetitor] = []
            if row.brand_id:
                if row.brand_id not in brands:
                    brands[row.brand_id] = await session.get(Brand, row.brand_id)
                    brand_competitors[row.brand_id] = list(
                        (
                            await session.execute(
                                select(BrandCompetitor)
                                .where(BrandCompetitor.brand_id == row.brand_id)
                                .order_by(BrandCompetitor.priority, BrandCompetitor.id)
                            )
                        )
                        .scalars()
                        .all()
                    )
                brand_row = brands[row.brand_id]
                configured = brand_competitors[row.brand_id]

            brand_name = row.brand or (brand_row.name if brand_row else "")
            brand = BrandSpec(
                id=row.brand_id or "",
                name=brand_name,
                aliases=tuple(aliases_from_metadata(brand_row.metadata_ if brand_row else None)),
            )

            configured_aliases = {
                c.competitor_name.strip().lower(): aliases_from_metadata(c.metadata_) for c in configured
            }
            names = _competitor_names(row.competitors) or [c.competitor_name for c in configured]
            competitors = [
                CompetitorSpec(name=name, aliases=tuple(configured_aliases.get(name.lower(), ())))
                for name in names
                if name.lower() != brand_name.strip().lower()
            ]

            jobs.append(
                _ScoringJob(
                    collector_result_id=row.id,
                    context=AnswerContext(
                        customer_id=row.customer_id,
                        brand_id=row.brand_id,
                        brand_name=brand_name,
                        query_id=row.query_id,
                        query_text=row.question or "",
                        execution_id=row.execution_id,
                        collector_type=row.collector_type,
                        collector_result_id=row.id,
                    ),
                    brand=brand,
                    competitors=competitors,
                    raw_answer=row.raw_answer or "",
                )
            )
        return jobs

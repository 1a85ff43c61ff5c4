"""Celery tasks for visibility scoring.

Each run builds its own engine, provider chain and orchestrator inside a fresh
event loop, scores one batch of completed answers, and disposes the engine.
"""

import asyncio
import logging

from brandpulse.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def _run_async(coro):
    """Run an async coroutine from sync Celery task context.

    Creates a fresh event loop each time so the async engine is bound to the
    loop that uses it.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _score_pending(database_url: str | None = None) -> dict:
    from brandpulse.analysis.hybrid_scorer import build_default_orchestrator
    from brandpulse.core.config import settings
    from brandpulse.db.session import create_engine_and_session_factory
    from brandpulse.services.visibility_scoring import VisibilityScoringService

    orchestrator = build_default_orchestrator()
    if not orchestrator.counter.chain.adapters:
        logger.error("No counting providers configured, skipping scoring run")
        return {"status": "skipped", "reason": "no_providers"}

    engine, session_factory = create_engine_and_session_factory(database_url or settings.postgres_url)
    try:
        service = VisibilityScoringService(
            session_factory,
            orchestrator,
            batch_size=settings.scoring_batch_size,
            concurrency=settings.scoring_concurrency,
        )
        result = await service.score_pending()
    finally:
        await engine.dispose()

    return {"status": "ok", **result.to_dict()}


@celery_app.task(name="score_pending_answers")
def score_pending_answers() -> dict:
    """Score all completed, not-yet-scored collector results."""
    logger.info("Scoring run started")
    summary = _run_async(_score_pending())
    logger.info("Scoring run finished: %s", summary)
    return summary

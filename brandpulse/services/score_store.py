"""Idempotent persistence of ScoreRows keyed on (brand_id, query_id, competitor_name, collector_type)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from brandpulse.analysis.types import ScoreRow
from brandpulse.models.score import Score

logger = logging.getLogger(__name__)

_SCORE_COLUMNS = (
    "customer_id",
    "brand_name",
    "query_text",
    "execution_id",
    "visibility_index",
    "visibility_index_competitor",
    "share_of_answers",
    "share_of_answers_competitor",
    "sentiment_score",
    "sentiment_score_competitor",
    "brand_position",
    "brand_positions",
    "competitor_position",
    "competitor_positions",
    "positive_sentiment_sentences",
    "negative_sentiment_sentences",
    "positive_sentiment_sentences_competitor",
    "negative_sentiment_sentences_competitor",
    "total_words",
)


def _nullable_eq(column, value):
    return column.is_(None) if value is None else column == value


class ScoreRepository:
    async def upsert(self, session: AsyncSession, row: ScoreRow, collector_result_id: int | None = None) -> Score:
        """Update the existing score for the row's key or insert a new one. Does not commit."""
        result = await session.execute(
            select(Score).where(
                _nullable_eq(Score.brand_id, row.brand_id),
                _nullable_eq(Score.query_id, row.query_id),
                Score.competitor_name == row.competitor_name,
                _nullable_eq(Score.collector_type, row.collector_type),
            )
        )
        score = result.scalar_one_or_none()
        data = row.to_dict()

        if score is None:
            score = Score(
                brand_id=row.brand_id,
                query_id=row.query_id,
                competitor_name=row.competitor_name,
                collector_type=row.collector_type,
            )
            session.add(score)
        else:
            score.updated_at = datetime.now(timezone.utc)

        for column in _SCORE_COLUMNS:
            setattr(score, column, data[column])
        if collector_result_id is not None:
            score.collector_result_id = collector_result_id

        await session.flush()
        return score

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from brandpulse.db.base import Base, BigIntegerPK, JSONType


class Score(Base):
    """Brand-vs-competitor visibility metrics for one answer.

    Brand-side columns repeat across the competitor rows of the same answer.
    """

    __tablename__ = "scores"
    __table_args__ = (
        UniqueConstraint("brand_id", "query_id", "competitor_name", "collector_type", name="uq_score_key"),
    )

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    brand_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    brand_name: Mapped[str] = mapped_column(String(255), nullable=False)
    query_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    query_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    execution_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    collector_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    collector_result_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    competitor_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Brand side
    visibility_index: Mapped[float | None] = mapped_column(Float, nullable=True)
    share_of_answers: Mapped[float | None] = mapped_column(Float, nullable=True)
    sentiment_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    brand_position: Mapped[int | None] = mapped_column(Integer, nullable=True)  # first 1-based token position
    brand_positions: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    positive_sentiment_sentences: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    negative_sentiment_sentences: Mapped[list | None] = mapped_column(JSONType, nullable=True)

    # Competitor side
    visibility_index_competitor: Mapped[float | None] = mapped_column(Float, nullable=True)
    share_of_answers_competitor: Mapped[float | None] = mapped_column(Float, nullable=True)
    sentiment_score_competitor: Mapped[float | None] = mapped_column(Float, nullable=True)
    competitor_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    competitor_positions: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    positive_sentiment_sentences_competitor: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    negative_sentiment_sentences_competitor: Mapped[list | None] = mapped_column(JSONType, nullable=True)

    total_words: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

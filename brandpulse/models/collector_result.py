from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from brandpulse.db.base import Base, BigIntegerPK, JSONType


class CollectorResult(Base):
    """One answer collected from one LLM surface for one query execution."""

    __tablename__ = "collector_results"
    __table_args__ = (Index("ix_collector_results_execution", "execution_id", "collector_type"),)

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    brand_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    query_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    question: Mapped[str | None] = mapped_column(Text, nullable=True)
    execution_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    collector_type: Mapped[str | None] = mapped_column(String(50), nullable=True)  # chatgpt | perplexity | gemini | ...

    brand: Mapped[str | None] = mapped_column(String(255), nullable=True)
    competitors: Mapped[list | None] = mapped_column(JSONType, nullable=True)  # ["Globex", {"name": "Initech"}]

    raw_answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str | None] = mapped_column(
        String(20), nullable=True, default="pending"
    )  # pending | processing | running | failed_retry | completed | failed
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

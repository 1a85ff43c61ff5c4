"""create collector_results, scores, brands and brand_competitors

Revision ID: 4c2e9a71b0d3
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "4c2e9a71b0d3"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # =========================================================
    # 1. Brands and their configured competitors
    # =========================================================
    op.create_table(
        "brands",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("metadata", JSONB(), nullable=True),
    )
    op.create_table(
        "brand_competitors",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "brand_id", sa.String(64), sa.ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("competitor_name", sa.String(255), nullable=False),
        sa.Column("metadata", JSONB(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
    )

    # =========================================================
    # 2. Collected answers (status guarded by compare-and-set)
    # =========================================================
    op.create_table(
        "collector_results",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.String(64), nullable=True, index=True),
        sa.Column("brand_id", sa.String(64), nullable=True, index=True),
        sa.Column("query_id", sa.String(64), nullable=True),
        sa.Column("question", sa.Text(), nullable=True),
        sa.Column("execution_id", sa.String(64), nullable=True),
        sa.Column("collector_type", sa.String(50), nullable=True),
        sa.Column("brand", sa.String(255), nullable=True),
        sa.Column("competitors", JSONB(), nullable=True),
        sa.Column("raw_answer", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=True, server_default="pending"),
        sa.Column("metadata", JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_collector_results_execution", "collector_results", ["execution_id", "collector_type"])

    # =========================================================
    # 3. Scores (one row per answer x competitor)
    # =========================================================
    op.create_table(
        "scores",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.String(64), nullable=True, index=True),
        sa.Column("brand_id", sa.String(64), nullable=True, index=True),
        sa.Column("brand_name", sa.String(255), nullable=False),
        sa.Column("query_id", sa.String(64), nullable=True),
        sa.Column("query_text", sa.Text(), nullable=True),
        sa.Column("execution_id", sa.String(64), nullable=True),
        sa.Column("collector_type", sa.String(50), nullable=True),
        sa.Column("collector_result_id", sa.BigInteger(), nullable=True, index=True),
        sa.Column("competitor_name", sa.String(255), nullable=False),
        sa.Column("visibility_index", sa.Float(), nullable=True),
        sa.Column("share_of_answers", sa.Float(), nullable=True),
        sa.Column("sentiment_score", sa.Float(), nullable=True),
        sa.Column("brand_position", sa.Integer(), nullable=True),
        sa.Column("brand_positions", JSONB(), nullable=True),
        sa.Column("positive_sentiment_sentences", JSONB(), nullable=True),
        sa.Column("negative_sentiment_sentences", JSONB(), nullable=True),
        sa.Column("visibility_index_competitor", sa.Float(), nullable=True),
        sa.Column("share_of_answers_competitor", sa.Float(), nullable=True),
        sa.Column("sentiment_score_competitor", sa.Float(), nullable=True),
        sa.Column("competitor_position", sa.Integer(), nullable=True),
        sa.Column("competitor_positions", JSONB(), nullable=True),
        sa.Column("positive_sentiment_sentences_competitor", JSONB(), nullable=True),
        sa.Column("negative_sentiment_sentences_competitor", JSONB(), nullable=True),
        sa.Column("total_words", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("brand_id", "query_id", "competitor_name", "collector_type", name="uq_score_key"),
    )


def downgrade() -> None:
    op.drop_table("scores")
    op.drop_index("ix_collector_results_execution", table_name="collector_results")
    op.drop_table("collector_results")
    op.drop_table("brand_competitors")
    op.drop_table("brands")

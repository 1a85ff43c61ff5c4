from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from brandpulse.db.base import Base, BigIntegerPK, JSONType


class Brand(Base):
    __tablename__ = "brands"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)  # {"aliases": [...]}

    competitors: Mapped[list["BrandCompetitor"]] = relationship(
        "BrandCompetitor", back_populates="brand", order_by="BrandCompetitor.priority"
    )


class BrandCompetitor(Base):
    __tablename__ = "brand_competitors"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)
    brand_id: Mapped[str] = mapped_column(ForeignKey("brands.id", ondelete="CASCADE"), nullable=False, index=True)
    competitor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)  # {"aliases": [...]}
    priority: Mapped[int] = mapped_column(Integer, default=0)

    brand: Mapped[Brand] = relationship("Brand", back_populates="competitors")

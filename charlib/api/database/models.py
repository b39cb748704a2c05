"""SQLAlchemy ORM models for PostgreSQL."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


class ReferenceAssetRecord(Base):
    """A reference image in a character's pool."""

    __tablename__ = "reference_assets"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    character_id: Mapped[str] = mapped_column(String(64), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    quality_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    consistency_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    shot_type: Mapped[Optional[str]] = mapped_column(String(20))
    angle: Mapped[Optional[str]] = mapped_column(String(20))
    keywords_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    media_url: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationship
    generation: Mapped[Optional["GenerationMetadataRecord"]] = relationship(
        back_populates="asset", cascade="all, delete-orphan", uselist=False
    )

    __table_args__ = (
        Index("idx_reference_assets_character_id", "character_id"),
        # At most one master reference per character
        Index(
            "uq_reference_assets_master",
            "character_id",
            unique=True,
            postgresql_where=text("kind = 'master'"),
        ),
    )


class GenerationMetadataRecord(Base):
    """How an accepted generated asset was produced."""

    __tablename__ = "generation_metadata"

    asset_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("reference_assets.id", ondelete="CASCADE"), primary_key=True
    )
    request_id: Mapped[str] = mapped_column(String(36), nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    style: Mapped[str] = mapped_column(String(40), nullable=False)
    source_reference_id: Mapped[str] = mapped_column(String(64), nullable=False)
    quality_score: Mapped[float] = mapped_column(Float, nullable=False)
    consistency_score: Mapped[float] = mapped_column(Float, nullable=False)
    tags_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationship
    asset: Mapped["ReferenceAssetRecord"] = relationship(back_populates="generation")

    __table_args__ = (
        Index("idx_generation_metadata_request_id", "request_id"),
    )


class GenerationAttemptRecord(Base):
    """Audit trail entry: one attempt of a smart generation request."""

    __tablename__ = "generation_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[str] = mapped_column(String(36), nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    reference_id: Mapped[str] = mapped_column(String(64), nullable=False)
    reference_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    elapsed_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    quality_score: Mapped[Optional[float]] = mapped_column(Float)
    consistency_score: Mapped[Optional[float]] = mapped_column(Float)
    reject_reason: Mapped[Optional[str]] = mapped_column(Text)
    candidate_asset_id: Mapped[Optional[str]] = mapped_column(String(64))
    same_subject: Mapped[Optional[bool]] = mapped_column(Boolean)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        # Unique constraint on request_id + attempt_number
        Index("uq_generation_attempt", "request_id", "attempt_number", unique=True),
    )

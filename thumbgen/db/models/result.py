"""Generated image SQLAlchemy model."""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, CreatedAtMixin, generate_uuid


class GeneratedImage(Base, CreatedAtMixin):
    """A thumbnail produced by a completed job, materialized by ingestion."""

    __tablename__ = "results"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=generate_uuid,
    )
    request_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Job (training or generation) that produced the image",
    )
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    image_url: Mapped[str] = mapped_column(String(1000), nullable=False)

    __table_args__ = (
        Index("ix_results_request", "request_id"),
        Index("ix_results_user_created", "user_id", "created_at"),
    )

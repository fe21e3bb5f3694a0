from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class Organisation(Base):
    __tablename__ = "organisations"

    organisation_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    admin_ref: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    days_count: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    period_count: Mapped[int] = mapped_column(Integer, nullable=False, default=8)
    teacher_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    # Embedded classroom documents, each carrying its own flattened grid.
    classrooms: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

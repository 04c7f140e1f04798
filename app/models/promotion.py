import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.session import Base
from app.db.types import GUID, UTCDateTime, utcnow
from app.models.user import User


class Promotion(Base):
    __tablename__ = "promotions"
    __table_args__ = (
        Index("ix_promotions_active_window", "is_active", "start_date", "end_date"),
        Index("ix_promotions_priority_created", "priority", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(180), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Stored as plain strings so an unknown value read back from the database
    # surfaces as a validation error at evaluation time instead of a load failure.
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    value: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False)
    buy_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    get_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_purchase: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    max_discount: Mapped[float | None] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=True)

    start_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    target_type: Mapped[str] = mapped_column(String(16), nullable=False, default="ALL")
    target_products: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    target_categories: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False)

    created_by: Mapped[User | None] = relationship(User, lazy="selectin")

    # ORM updates carry "WHERE version = :old"; a concurrent edit surfaces as StaleDataError.
    __mapper_args__ = {"version_id_col": version}

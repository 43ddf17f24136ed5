from datetime import datetime, timezone
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import DateTime, Integer

def utcnow():
    return datetime.now(timezone.utc)

class IDMixin:
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

class SoftDeleteMixin:
    # Rows with deleted_at set are logically removed and hidden from every default query.
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

class DescriptorMixin:
    """Record descriptor.

    ``__searchable__`` lists the columns matched by the free-text ``q`` search;
    ``__hidden__`` lists columns never serialized, filtered or sorted on.
    """

    __searchable__: tuple[str, ...] = ()
    __hidden__: tuple[str, ...] = ()

    @classmethod
    def searchable_fields(cls) -> list[str]:
        return list(cls.__searchable__)

    @classmethod
    def hidden_fields(cls) -> set[str]:
        return set(cls.__hidden__)

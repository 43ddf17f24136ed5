from typing import Optional

from sqlalchemy import ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base
from app.models.common import IDMixin, DescriptorMixin, SoftDeleteMixin, TimestampMixin

class Product(Base, IDMixin, TimestampMixin, SoftDeleteMixin, DescriptorMixin):
    __tablename__ = "products"
    __searchable__ = ("name", "status")

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    price: Mapped[float] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False, index=True)  # active|inactive
    category_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("categories.id"), nullable=True, index=True)

    category: Mapped[Optional["Category"]] = relationship(back_populates="products")

from app.models.category import Category  # noqa: E402

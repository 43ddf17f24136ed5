from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base
from app.models.common import IDMixin, DescriptorMixin, SoftDeleteMixin, TimestampMixin

class Category(Base, IDMixin, TimestampMixin, SoftDeleteMixin, DescriptorMixin):
    __tablename__ = "categories"
    __searchable__ = ("name",)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    products: Mapped[list["Product"]] = relationship(back_populates="category")

from app.models.product import Product  # noqa: E402

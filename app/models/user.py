from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base
from app.models.common import IDMixin, DescriptorMixin, SoftDeleteMixin, TimestampMixin

class User(Base, IDMixin, TimestampMixin, SoftDeleteMixin, DescriptorMixin):
    __tablename__ = "users"
    __searchable__ = ("name", "email", "role")
    __hidden__ = ("password_hash",)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="user", nullable=False)  # admin|manager|user

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin

ROLE_USER = "user"
ROLE_PUBLISHER = "publisher"
ROLE_ADMIN = "admin"

class User(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "users"
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=ROLE_USER)  # user|publisher|admin
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

import uuid

from sqlalchemy import Float, ForeignKey, Integer, JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin

DEFAULT_PHOTO = "no-photo.jpg"


def _default_photos() -> list[str]:
    return [DEFAULT_PHOTO]


class Attraction(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "attractions"
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    slug: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    website: Mapped[str | None] = mapped_column(String(300), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    address: Mapped[str | None] = mapped_column(String(300), nullable=True)

    # Geocoded location
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True, index=True)
    formatted_address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    state: Mapped[str | None] = mapped_column(String(120), nullable=True)
    zipcode: Mapped[str | None] = mapped_column(String(20), nullable=True)
    country: Mapped[str | None] = mapped_column(String(120), nullable=True)

    photos: Mapped[list] = mapped_column(JSON, default=_default_photos, nullable=False)
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    likes: Mapped[list] = mapped_column(JSON, default=list, nullable=False)  # user ids
    bookmarks: Mapped[list] = mapped_column(JSON, default=list, nullable=False)  # user ids
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("users.id"), index=True, nullable=False)

    products: Mapped[list["Product"]] = relationship(
        back_populates="attraction",
        cascade="all, delete-orphan",
        order_by="Product.name",
    )


from app.models.product import Product  # noqa: E402

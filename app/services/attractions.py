from __future__ import annotations

import re
import unicodedata
import uuid
from pathlib import PurePath
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.models.attraction import DEFAULT_PHOTO, Attraction
from app.models.user import ROLE_ADMIN, User
from app.services.geocoder import GeoLocation

_SLUG_SEPARATOR_RE = re.compile(r"[^a-z0-9]+")


def slugify(value: Any) -> str:
    normalized = unicodedata.normalize("NFKD", str(value or ""))
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii").lower()
    return _SLUG_SEPARATOR_RE.sub("-", ascii_text).strip("-")


def uuid_or_none(raw: Any) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(raw))
    except (TypeError, ValueError):
        return None


def get_attraction_or_404(db: Session, attraction_id: str) -> Attraction:
    attraction_uuid = uuid_or_none(attraction_id)
    attraction = db.get(Attraction, attraction_uuid) if attraction_uuid else None
    if attraction is None:
        raise HTTPException(status_code=404, detail=f"Attraction not found with ID of {attraction_id}")
    return attraction


def ensure_owner_or_admin(owner_id: uuid.UUID, user: User, action: str) -> None:
    if owner_id != user.id and user.role != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail=f"User {user.id} is not authorized to {action}")


def apply_location(attraction: Attraction, location: GeoLocation) -> None:
    attraction.latitude = location.latitude
    attraction.longitude = location.longitude
    attraction.formatted_address = location.formatted_address
    attraction.city = location.city
    attraction.state = location.state
    attraction.zipcode = location.zipcode
    attraction.country = location.country


def uploaded_photos(photos: list | None) -> list[str]:
    """Stored photo names without the default placeholder."""
    names = list(photos or [])
    if names == [DEFAULT_PHOTO]:
        return []
    return names


def photo_file_name(attraction_id: uuid.UUID, number: int, original_name: str | None) -> str:
    ext = PurePath(str(original_name or "")).suffix.lower()
    return f"photo_{attraction_id}_{number}{ext}"


def read_upload(stream, max_bytes: int) -> bytes | None:
    """Upload content, or None when it is larger than ``max_bytes``."""
    content = stream.read(max_bytes + 1)
    if len(content) > max_bytes:
        return None
    return content


def add_user_mark(marks: list | None, user_id: uuid.UUID) -> list[str] | None:
    """Return ``marks`` with ``user_id`` appended, or None if it is already there."""
    current = [str(v) for v in (marks or [])]
    if str(user_id) in current:
        return None
    return current + [str(user_id)]


def remove_user_mark(marks: list | None, user_id: uuid.UUID) -> list[str] | None:
    """Return ``marks`` without ``user_id``, or None if it was not there."""
    current = [str(v) for v in (marks or [])]
    if str(user_id) not in current:
        return None
    return [v for v in current if v != str(user_id)]

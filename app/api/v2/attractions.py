from __future__ import annotations

import logging

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, File, HTTPException, Path, UploadFile
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_current_user, require_role
from app.db.session import get_db
from app.models.attraction import Attraction
from app.models.user import ROLE_ADMIN, ROLE_PUBLISHER, User
from app.schemas.advanced_results import AdvancedResults
from app.schemas.attractions import AttractionCreate, AttractionUpdate
from app.services.advanced_results import advanced_results
from app.services.attractions import (
    add_user_mark,
    apply_location,
    ensure_owner_or_admin,
    get_attraction_or_404,
    photo_file_name,
    read_upload,
    remove_user_mark,
    slugify,
    uploaded_photos,
)
from app.services.geo import find_within_radius, radius_in_radians
from app.services.geocoder import Geocoder, get_geocoder
from app.services.photo_storage import PhotoStorage, build_photo_key, get_photo_storage
from app.services.serialization import row_to_dict

_LOG = logging.getLogger("app.attractions")

router = APIRouter()

PUBLISHERS = (ROLE_PUBLISHER, ROLE_ADMIN)
REQUIRED_FIELDS = ("name", "description")


@router.get("", response_model=AdvancedResults)
def get_attractions(results: AdvancedResults = Depends(advanced_results(Attraction, "products"))):
    return results


@router.get("/radius/{zipcode}/{distance}")
def get_attractions_in_radius(
    zipcode: str,
    distance: float = Path(ge=0),
    db: Session = Depends(get_db),
    geocoder: Geocoder = Depends(get_geocoder),
):
    locations = geocoder.geocode(zipcode)
    if not locations:
        raise HTTPException(status_code=404, detail=f"Location not found for {zipcode}")
    center = locations[0]
    rows = find_within_radius(db, Attraction, center.latitude, center.longitude, radius_in_radians(distance))
    return {"success": True, "count": len(rows), "data": [row_to_dict(r) for r in rows]}


@router.get("/{id}")
def get_attraction(id: str, db: Session = Depends(get_db)):
    attraction = get_attraction_or_404(db, id)
    db.query(Attraction).filter(Attraction.id == attraction.id).update(
        {Attraction.view_count: Attraction.view_count + 1}, synchronize_session=False
    )
    db.commit()
    db.refresh(attraction)
    return {"success": True, "data": row_to_dict(attraction)}


@router.post("", status_code=201)
def create_attraction(
    payload: AttractionCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(*PUBLISHERS)),
    geocoder: Geocoder = Depends(get_geocoder),
):
    published = db.query(Attraction).filter(Attraction.user_id == user.id).first()
    if published is not None and user.role != ROLE_ADMIN:
        raise HTTPException(status_code=400, detail=f"The user with ID {user.id} has already published an attraction")

    attraction = Attraction(**payload.model_dump(), slug=slugify(payload.name), user_id=user.id)
    if attraction.address and (attraction.latitude is None or attraction.longitude is None):
        locations = geocoder.geocode(attraction.address)
        if not locations:
            raise HTTPException(status_code=400, detail=f"Could not geocode address {attraction.address}")
        apply_location(attraction, locations[0])

    db.add(attraction); db.commit(); db.refresh(attraction)
    _LOG.info("attraction created id=%s user=%s", attraction.id, user.id)
    return {"success": True, "data": row_to_dict(attraction)}


@router.put("/{id}")
def update_attraction(
    id: str,
    payload: AttractionUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(*PUBLISHERS)),
):
    attraction = get_attraction_or_404(db, id)
    ensure_owner_or_admin(attraction.user_id, user, "update this attraction")

    data = payload.model_dump(exclude_unset=True)
    for key in REQUIRED_FIELDS:
        if key in data and data[key] is None:
            raise HTTPException(status_code=400, detail=f"Please add a {key}")
    for key, value in data.items():
        setattr(attraction, key, value)
    if "name" in data:
        attraction.slug = slugify(attraction.name)

    db.add(attraction); db.commit(); db.refresh(attraction)
    return {"success": True, "data": row_to_dict(attraction)}


@router.delete("/{id}")
def delete_attraction(
    id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(*PUBLISHERS)),
):
    attraction = get_attraction_or_404(db, id)
    ensure_owner_or_admin(attraction.user_id, user, "delete this attraction")
    db.delete(attraction); db.commit()
    _LOG.info("attraction deleted id=%s user=%s", id, user.id)
    return {"success": True, "data": {}}


def _update_marks(db: Session, id: str, user: User, field: str, add: bool, error: str) -> dict:
    attraction = get_attraction_or_404(db, id)
    current = getattr(attraction, field)
    updated = add_user_mark(current, user.id) if add else remove_user_mark(current, user.id)
    if updated is None:
        raise HTTPException(status_code=400, detail=error)
    setattr(attraction, field, updated)
    db.add(attraction); db.commit(); db.refresh(attraction)
    return {"success": True, "data": getattr(attraction, field)}


@router.put("/like/{id}")
def like_attraction(id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return _update_marks(db, id, user, "likes", True, "Attraction already liked")


@router.put("/unlike/{id}")
def unlike_attraction(id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return _update_marks(db, id, user, "likes", False, "Attraction not liked")


@router.put("/bookmark/{id}")
def bookmark_attraction(id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return _update_marks(db, id, user, "bookmarks", True, "Attraction already bookmarked")


@router.put("/unbookmark/{id}")
def unbookmark_attraction(id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return _update_marks(db, id, user, "bookmarks", False, "Attraction not bookmarked")


@router.put("/{id}/photos")
def upload_attraction_photo(
    id: str,
    file: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_role(*PUBLISHERS)),
    storage: PhotoStorage = Depends(get_photo_storage),
):
    attraction = get_attraction_or_404(db, id)
    ensure_owner_or_admin(attraction.user_id, user, "add a photo to this attraction")

    if file is None:
        raise HTTPException(status_code=400, detail="Please upload a file")
    mime_type = str(file.content_type or "")
    if not mime_type.startswith("image"):
        raise HTTPException(status_code=400, detail="Please upload an image file")
    content = read_upload(file.file, settings.MAX_FILE_UPLOAD)
    if content is None:
        raise HTTPException(
            status_code=400,
            detail=f"Please upload an image smaller than {settings.MAX_FILE_UPLOAD} bytes",
        )

    photos = uploaded_photos(attraction.photos)
    name = photo_file_name(attraction.id, len(photos) + 1, file.filename)
    try:
        storage.save(build_photo_key(name), content, mime_type)
    except (BotoCoreError, ClientError) as exc:
        _LOG.error("photo upload failed attraction=%s key=%s error=%s", attraction.id, name, exc)
        raise HTTPException(status_code=500, detail="Problem with file upload") from exc

    attraction.photos = photos + [name]
    db.add(attraction); db.commit()
    return {"success": True, "data": name}

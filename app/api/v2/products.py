from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, selectinload

from app.core.deps import require_role
from app.db.session import get_db
from app.models.attraction import Attraction
from app.models.product import Product
from app.models.user import ROLE_ADMIN, ROLE_PUBLISHER, User
from app.schemas.advanced_results import AdvancedResults
from app.schemas.products import ProductCreate, ProductUpdate
from app.services.advanced_results import Populate, advanced_results
from app.services.attractions import ensure_owner_or_admin, uuid_or_none
from app.services.serialization import row_to_dict, row_with_relation

router = APIRouter()
# Mounted under /attractions/{attraction_id}/products
nested_router = APIRouter()

PUBLISHERS = (ROLE_PUBLISHER, ROLE_ADMIN)
ATTRACTION_SUMMARY = Populate(path="attraction", select=("name", "slug"))
ATTRACTION_SUMMARY_FIELDS = ("id",) + ATTRACTION_SUMMARY.select


def _get_product_or_404(db: Session, product_id: str) -> Product:
    product_uuid = uuid_or_none(product_id)
    product = db.get(Product, product_uuid) if product_uuid else None
    if product is None:
        raise HTTPException(status_code=404, detail=f"No product with the ID of {product_id}")
    return product


@router.get("", response_model=AdvancedResults)
def get_products(results: AdvancedResults = Depends(advanced_results(Product, ATTRACTION_SUMMARY))):
    return results


@router.get("/{id}")
def get_product(id: str, db: Session = Depends(get_db)):
    product_uuid = uuid_or_none(id)
    product = None
    if product_uuid is not None:
        product = (
            db.query(Product)
            .options(selectinload(Product.attraction))
            .filter(Product.id == product_uuid)
            .first()
        )
    if product is None:
        raise HTTPException(status_code=404, detail=f"No product with the ID of {id}")
    return {"success": True, "data": row_with_relation(product, "attraction", related_fields=ATTRACTION_SUMMARY_FIELDS)}


@router.put("/{id}")
def update_product(
    id: str,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(*PUBLISHERS)),
):
    product = _get_product_or_404(db, id)
    ensure_owner_or_admin(product.user_id, user, f"update product {product.id}")

    data = payload.model_dump(exclude_unset=True)
    if "name" in data and data["name"] is None:
        raise HTTPException(status_code=400, detail="Please add a name")
    if "price" in data and data["price"] is None:
        raise HTTPException(status_code=400, detail="Please add a price")
    for key, value in data.items():
        setattr(product, key, value)

    db.add(product); db.commit(); db.refresh(product)
    return {"success": True, "data": row_to_dict(product)}


@router.delete("/{id}")
def delete_product(
    id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(*PUBLISHERS)),
):
    product = _get_product_or_404(db, id)
    ensure_owner_or_admin(product.user_id, user, f"delete product {product.id}")
    db.delete(product); db.commit()
    return {"success": True, "data": []}


@nested_router.get("")
def get_attraction_products(attraction_id: str, db: Session = Depends(get_db)):
    attraction_uuid = uuid_or_none(attraction_id)
    rows = []
    if attraction_uuid is not None:
        rows = db.query(Product).filter(Product.attraction_id == attraction_uuid).order_by(Product.name).all()
    return {"success": True, "count": len(rows), "data": [row_to_dict(r) for r in rows]}


@nested_router.post("", status_code=201)
def add_product(
    attraction_id: str,
    payload: ProductCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_role(*PUBLISHERS)),
):
    attraction_uuid = uuid_or_none(attraction_id)
    attraction = db.get(Attraction, attraction_uuid) if attraction_uuid else None
    if attraction is None:
        raise HTTPException(status_code=404, detail=f"No attraction with the ID of {attraction_id}")
    ensure_owner_or_admin(attraction.user_id, user, f"add a product to attraction {attraction.id}")

    product = Product(**payload.model_dump(), attraction_id=attraction.id, user_id=user.id)
    db.add(product); db.commit(); db.refresh(product)
    return {"success": True, "data": row_to_dict(product)}

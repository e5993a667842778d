from fastapi import APIRouter
from app.api.v2 import attractions, auth, products

router = APIRouter()
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(products.nested_router, prefix="/attractions/{attraction_id}/products", tags=["Products"])
router.include_router(attractions.router, prefix="/attractions", tags=["Attractions"])
router.include_router(products.router, prefix="/products", tags=["Products"])

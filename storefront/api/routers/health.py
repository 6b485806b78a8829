# storefront/api/routers/health.py
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.dependencies import get_catalog
from storefront.services.catalog_service import CatalogService

router = APIRouter(tags=["health"])


@router.get("/health")
def health(db: Session = Depends(get_db), catalog: CatalogService = Depends(get_catalog)):
    db.execute(text("SELECT 1"))
    return {"status": "ok", "designs": len(catalog)}

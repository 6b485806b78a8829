# storefront/api/routers/designs.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from storefront.dependencies import get_catalog
from storefront.domain.schemas import Design, DesignOut
from storefront.services.catalog_service import CatalogService

router = APIRouter(prefix="/designs", tags=["designs"])


def to_out(design: Design) -> DesignOut:
    return DesignOut(
        id=design.id,
        artist=design.artist,
        song=design.song,
        shape=design.shape,
        price=design.price,
        formats=sorted(design.formats),
    )


@router.get("", response_model=List[DesignOut])
def list_designs(catalog: CatalogService = Depends(get_catalog)):
    return [to_out(d) for d in catalog.list_designs()]


@router.get("/{design_id}", response_model=DesignOut)
def get_design(design_id: str, catalog: CatalogService = Depends(get_catalog)):
    design = catalog.get_design(design_id)
    if not design:
        raise HTTPException(status_code=404, detail={"error": "design_not_found", "message": "Design not found"})
    return to_out(design)

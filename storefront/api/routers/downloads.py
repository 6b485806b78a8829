# storefront/api/routers/downloads.py
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.dependencies import get_catalog, get_delivery
from storefront.domain.errors import StorefrontError
from storefront.services.fulfillment_service import FulfillmentService

router = APIRouter(prefix="/downloads", tags=["downloads"])

MEDIA_TYPES = {
    "SVG": "image/svg+xml",
    "PNG": "image/png",
    "PDF": "application/pdf",
    "EPS": "application/postscript",
}


def get_service(db: Session = Depends(get_db), catalog=Depends(get_catalog), delivery=Depends(get_delivery)):
    return FulfillmentService(db, catalog, delivery)


@router.get("/{grant_id}")
def download(grant_id: str, svc: FulfillmentService = Depends(get_service)):
    """Streams the file behind a grant. Each grant works once."""
    try:
        grant, path = svc.redeem(grant_id)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    return FileResponse(
        path,
        media_type=MEDIA_TYPES.get(grant.format.upper(), "application/octet-stream"),
        filename=path.name,
    )

# storefront/services/fulfillment_service.py
import uuid
from datetime import datetime, timezone, timedelta
from pathlib import Path
from typing import List

from sqlalchemy import update
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.download_grant import DownloadGrantModel
from storefront.domain.errors import (
    AssetMissing,
    DeliveryFailed,
    GrantNotFound,
    GrantUnavailable,
    NotPayable,
)
from storefront.repos.order_repo import OrderRepo
from storefront.services.catalog_service import CatalogService
from storefront.services.order_service import OrderService
from storefront.utils.settings import DOWNLOAD_GRANT_TTL_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def as_utc(value: datetime) -> datetime:
    #sqlite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class FulfillmentService:
    """
    Turns a paid order into download grants, one per purchased unit.

    All or nothing: if any asset is missing or the hand-off fails, no grants
    are stored and the order stays paid, so dispatch can simply be retried.
    Dispatching a fulfilled order returns the grants issued the first time.
    The paid -> fulfilled step is claimed in the database before delivery,
    so concurrent dispatchers of one order deliver it once.
    """

    def __init__(
        self,
        db: Session,
        catalog: CatalogService,
        delivery,
        grant_ttl: int = DOWNLOAD_GRANT_TTL_SECONDS,
        clock=lambda: datetime.now(timezone.utc),
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.ledger = OrderService(db, catalog)
        self.catalog = catalog
        self.delivery = delivery
        self.grant_ttl = grant_ttl
        self.clock = clock

    def dispatch(self, order: OrderModel) -> List[DownloadGrantModel]:
        if order.status == "fulfilled":
            logger.info(f"Order {order.id} already fulfilled, returning {len(order.grants)} grant(s)")
            return list(order.grants)
        if order.status != "paid":
            raise NotPayable(order.id, order.status)

        missing = [
            (item.design_id, item.format)
            for item in order.items
            if self.catalog.resolve_asset(item.design_id, item.format) is None
        ]
        if missing:
            listed = ", ".join(f"{d}/{f}" for d, f in missing)
            logger.error(f"Order {order.id} is paid but cannot be fulfilled, missing asset(s): {listed}")
            raise AssetMissing(missing[0][0], missing[0][1], missing)

        expires_at = self.clock() + timedelta(seconds=self.grant_ttl)
        grants = [
            DownloadGrantModel(
                id=uuid.uuid4().hex,
                order_id=order.id,
                design_id=item.design_id,
                format=item.format,
                expires_at=expires_at,
                consumed=False,
            )
            for item in order.items
            for _ in range(item.quantity)
        ]

        self.ledger.check_transition(order, "fulfilled")
        if self.repo.claim_status(order.id, "paid", "fulfilled") != 1:
            #another worker fulfilled it after this copy was loaded
            self.repo.rollback()
            self.db.refresh(order)
            if order.status == "fulfilled":
                logger.info(f"Order {order.id} was fulfilled concurrently, returning its grants")
                return list(order.grants)
            raise NotPayable(order.id, order.status)

        self.repo.stage_grants(order, grants)
        try:
            results = self.delivery.deliver(
                order.id,
                order.recipient,
                [(g.design_id, g.format, g.id) for g in grants],
            )
        except Exception:
            self.repo.rollback()
            raise
        failed = sorted({key for key, ok in results.items() if not ok})
        if failed:
            self.repo.rollback()
            listed = ", ".join(f"{d}/{f}" for d, f in failed)
            logger.error(f"Delivery for order {order.id} failed for {listed}, order stays paid")
            raise DeliveryFailed(f"Delivery failed for {listed}")

        order = self.repo.commit(order)
        logger.info(f"Order {order.id} fulfilled with {len(grants)} grant(s)")
        return list(order.grants)

    def dispatch_by_id(self, order_id: str) -> List[DownloadGrantModel]:
        return self.dispatch(self.ledger.get_order(order_id))

    def get_grants(self, order_id: str) -> List[DownloadGrantModel]:
        return list(self.ledger.get_order(order_id).grants)

    def redeem(self, grant_id: str) -> tuple[DownloadGrantModel, Path]:
        """
        Read-once: the first successful redemption consumes the grant.
        A grant whose file went missing is not consumed.
        """
        grant = self.repo.get_grant(grant_id)
        if grant is None:
            raise GrantNotFound(f"Download {grant_id} not found")
        if grant.order.status not in ("paid", "fulfilled"):
            raise GrantUnavailable(f"Download {grant_id} is no longer available")
        if grant.consumed:
            raise GrantUnavailable(f"Download {grant_id} was already used")

        now = self.clock()
        if as_utc(grant.expires_at) <= now:
            raise GrantUnavailable(f"Download {grant_id} expired")

        path = self.catalog.resolve_asset(grant.design_id, grant.format)
        if path is None:
            logger.error(f"Grant {grant_id}: asset {grant.design_id}/{grant.format} missing")
            raise AssetMissing(grant.design_id, grant.format)

        #conditional update, two concurrent redemptions cannot both win
        rowcount = self.db.execute(
            update(DownloadGrantModel)
            .where(DownloadGrantModel.id == grant_id, DownloadGrantModel.consumed.is_(False))
            .values(consumed=True, consumed_at=now)
        ).rowcount
        if rowcount == 0:
            self.repo.rollback()
            raise GrantUnavailable(f"Download {grant_id} was already used")
        self.db.commit()
        self.db.refresh(grant)

        logger.info(f"Grant {grant_id} redeemed for order {grant.order_id}: {grant.design_id}/{grant.format}")
        return grant, path

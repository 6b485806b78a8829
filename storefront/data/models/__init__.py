#import all models so SQLAlchemy registers them in Base.metadata
from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.data.models.download_grant import DownloadGrantModel
from storefront.data.models.checkout import CheckoutModel

__all__ = ["OrderModel", "OrderItemModel", "DownloadGrantModel", "CheckoutModel"]

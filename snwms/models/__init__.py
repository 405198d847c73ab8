# snwms/models/__init__.py
from snwms.models.batch import InventoryBatch
from snwms.models.delivery import Delivery
from snwms.models.history import SerialNumberHistory
from snwms.models.return_record import ReturnRecord
from snwms.models.stock_log import StockLog
from snwms.models.unit import SerialNumberItem

__all__ = [
    "InventoryBatch",
    "SerialNumberItem",
    "SerialNumberHistory",
    "Delivery",
    "ReturnRecord",
    "StockLog",
]

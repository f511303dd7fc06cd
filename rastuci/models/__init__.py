# rastuci/models/__init__.py
from .catalog import *          # Category, Product, Variant
from .order import *            # Order, OrderItem
from .order_status_log import *  # OrderStatusLog
from .stock_audit import *      # StockAudit
from .user import *             # User
from .settings import *         # StoreSettings, ContactSettings

import enum


class CatalogSource(str, enum.Enum):
    local = "local"
    shopify = "shopify"


class AdjustmentKind(str, enum.Enum):
    adjustment = "ADJUSTMENT"
    overwrite = "OVERWRITE"
    receipt = "RECEIPT"


class OrderStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class DisplayStatus(str, enum.Enum):
    ordered = "ordered"
    shipped = "shipped"
    received = "received"
    cancelled = "cancelled"


class AlertKind(str, enum.Enum):
    low_stock = "low_stock"
    out_of_stock = "out_of_stock"


class AlertSeverity(str, enum.Enum):
    warning = "warning"
    critical = "critical"

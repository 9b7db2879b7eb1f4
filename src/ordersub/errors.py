"""Custom exceptions for ordersub."""


class OrdersubError(Exception):
    """Base exception for all ordersub errors."""

    pass


class SettingsError(OrdersubError):
    """Raised when an environment setting is missing or malformed."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid setting {name}: {reason}")


class StoreError(OrdersubError):
    """Raised when the record store fails or times out."""

    def __init__(self, operation: str, collection: str, detail: str = ""):
        self.operation = operation
        self.collection = collection
        self.detail = detail
        msg = f"Record store {operation} on '{collection}' failed"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class UniqueConstraintError(StoreError):
    """Raised when a write would violate a unique index."""

    def __init__(self, collection: str, fields: tuple[str, ...]):
        self.fields = fields
        super().__init__("create", collection, f"duplicate value for {', '.join(fields)}")


class GatewayError(OrdersubError):
    """Raised when a messaging gateway call fails or times out."""

    def __init__(self, method: str, detail: str):
        self.method = method
        self.detail = detail
        super().__init__(f"Gateway call {method} failed: {detail}")


class OrderNotFoundError(OrdersubError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class PlanNotFoundError(OrdersubError):
    """Raised when a plan ID doesn't exist in the catalog."""

    def __init__(self, plan_id: str, category: str | None = None):
        self.plan_id = plan_id
        self.category = category
        msg = f"Plan not found: {plan_id}"
        if category:
            msg = f"{msg} (category {category})"
        super().__init__(msg)


class OrderStateError(OrdersubError):
    """Raised when an order is not in a state that allows the requested transition."""

    def __init__(self, order_id: str, reason: str):
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Order {order_id}: {reason}")


class InvalidCallbackError(OrdersubError):
    """Raised when a button callback token doesn't match the token grammar."""

    def __init__(self, data: str):
        self.data = data
        super().__init__(f"Invalid callback token: {data!r}")


class SeedFileError(OrdersubError):
    """Raised when a seed file can't be loaded."""

    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"Cannot load seed file {path}: {reason}")

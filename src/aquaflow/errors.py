"""Custom exceptions for aquaflow."""


class AquaflowError(Exception):
    """Base exception for all aquaflow errors."""

    pass


# --- Taxonomy ---


class ValidationError(AquaflowError):
    """Raised when a required field is missing or malformed."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class ConflictError(AquaflowError):
    """Raised on a uniqueness violation or a write the record's state forbids."""

    pass


class NotFoundError(AquaflowError):
    """Raised when a referenced id does not resolve."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class ForbiddenError(AquaflowError):
    """Raised when the acting user lacks rights over an entity."""

    pass


class PartialFailureError(AquaflowError):
    """Raised when a multi-record write applied only some of its parts."""

    def __init__(self, operation: str, missing: list[str]):
        self.operation = operation
        self.missing = missing
        super().__init__(
            f"{operation} partially applied; unresolved: {', '.join(missing)}"
        )


# --- Store errors ---


class DuplicateRecordError(ConflictError):
    """Raised when a record collides with a unique field of an existing one."""

    def __init__(self, collection: str, field: str, value: str):
        self.collection = collection
        self.field = field
        self.value = value
        super().__init__(f"Duplicate {field} in {collection}: {value}")


class InvalidSchemaVersionError(AquaflowError):
    """Raised when the data file has an unsupported schema version."""

    def __init__(self, found: int, supported: int):
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported schema version {found}. This tool supports version {supported}."
        )


# --- Domain errors ---


class UserIdTakenError(ConflictError):
    """Raised when registering with a user ID that already exists."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User ID already exists: {user_id}")


class AreaNameTakenError(ConflictError):
    """Raised when a service area name is already served by a vendor."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Area '{name}' already has a vendor. Please choose a different area."
        )


class InvalidCredentialsError(ForbiddenError):
    """Raised when a login does not match a user of the requested type."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("Invalid credentials or user type")


class OrderNotFoundError(NotFoundError):
    """Raised when an order ID doesn't exist."""

    def __init__(self, order_id: str):
        super().__init__("Order", order_id)


class TerminalOrderError(ConflictError):
    """Raised when changing the status of a delivered or cancelled order."""

    def __init__(self, order_id: str, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} is {status} and can no longer change status")


class InvalidTransitionError(ConflictError):
    """Raised when a status change targets a state the order cannot enter."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move order from {current} to {target}")


class InvoiceExistsError(ConflictError):
    """Raised when an order already carries an invoice."""

    def __init__(self, order_id: str, invoice_id: str):
        self.order_id = order_id
        self.invoice_id = invoice_id
        super().__init__(f"Order {order_id} already has invoice {invoice_id}")

"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Wallet/Ledger
  3xxx: Catalog
  4xxx: Purchase/Payment
  5xxx: Calls
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Invalid or expired token", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Account is disabled", 403)


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Admin role required", 403)


class UserNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(1004, f"User not found: {user_id}", 404)


# --- 2xxx: Wallet/Ledger ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required} credits, available {available} credits",
            422,
        )
        self.required = required
        self.available = available


class InvalidAmountError(AppError):
    def __init__(self, amount: int) -> None:
        super().__init__(2002, f"Amount must be a positive integer, got {amount}", 422)


# --- 3xxx: Catalog ---

class ProductNotFoundError(AppError):
    def __init__(self, product_id: str) -> None:
        super().__init__(3001, f"Product not found: {product_id}", 404)


class ProductInvalidError(AppError):
    def __init__(self, product_id: str, detail: str) -> None:
        super().__init__(3002, f"Product {product_id} cannot be purchased: {detail}", 422)


class AgentNotFoundError(AppError):
    def __init__(self, agent_id: str) -> None:
        super().__init__(3003, f"Agent not found: {agent_id}", 404)


class InvalidCatalogPayloadError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3004, f"Invalid catalog payload: {detail}", 400)


class WebhookForbiddenError(AppError):
    def __init__(self) -> None:
        super().__init__(3005, "Webhook secret mismatch", 403)


# --- 4xxx: Purchase/Payment ---

class PurchaseNotFoundError(AppError):
    def __init__(self, purchase_id: str) -> None:
        super().__init__(4001, f"Purchase not found: {purchase_id}", 404)


class AuthenticityFailureError(AppError):
    """Signature or timestamp check failed. The sender should retry per its own policy."""

    def __init__(self, detail: str) -> None:
        super().__init__(4002, f"Webhook authenticity check failed: {detail}", 400)


class MalformedEventError(AppError):
    """Verified event that can never become valid. Acknowledged and dropped, never rejected."""

    def __init__(self, detail: str) -> None:
        super().__init__(4003, f"Malformed payment event: {detail}", 200)


# --- 5xxx: Calls ---

class InvalidCallDurationError(AppError):
    def __init__(self, duration_seconds: int) -> None:
        super().__init__(5001, f"Invalid call duration: {duration_seconds}", 422)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class UpstreamUnavailableError(AppError):
    def __init__(self, service: str, detail: str) -> None:
        super().__init__(9003, f"{service} unavailable: {detail}", 502)
        self.service = service

# storefront/domain/exceptions.py
"""
Bledy domenowe rdzenia koszyk -> zamowienie.

Kazdy blad niesie status HTTP, ktory router zwraca jako {"error": message}.
"""


class StoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StoreError):
    status_code = 400


class EmptyCartError(ValidationError):
    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class InvalidAddressError(ValidationError):
    def __init__(self, message: str = "Invalid address"):
        super().__init__(message)


class ProductUnavailableError(ValidationError):
    def __init__(self, product_id: int, product_name: str | None = None):
        self.product_id = product_id
        self.product_name = product_name
        super().__init__(f"{product_name or f'Product {product_id}'} is no longer available")


class InsufficientStockError(ValidationError):
    def __init__(self, product_id: int, product_name: str | None = None, available: int | None = None):
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        label = product_name or f"product {product_id}"
        if available is None:
            message = f"Insufficient stock for {label}"
        else:
            message = f"Insufficient stock for {label}: only {available} available"
        super().__init__(message)


class InvalidTransitionError(StoreError):
    status_code = 400


class NotFoundError(StoreError):
    status_code = 404


class ForbiddenError(StoreError):
    status_code = 403


class ConcurrencyConflictError(StoreError):
    status_code = 503

    def __init__(self, message: str = "Concurrent update detected, please retry"):
        super().__init__(message)


class OrderNumberExhaustedError(StoreError):
    status_code = 503

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Could not allocate a unique order number after {attempts} attempts, please retry")

"""
Доменные ошибки оформления заказа.

Каждая ошибка несёт error_code (как в ответах старого API) и HTTP-статус,
обработчик в api/errors.py превращает их в JSON-ответ.
"""


class OrderingError(Exception):
    error_code = "ORDER_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OrderingError):
    """Некорректный запрос: пустое имя, нет позиций, количество < 1."""
    error_code = "INVALID_ORDER"


class InvalidReference(OrderingError):
    """Позиция меню или категория не существует."""
    error_code = "INVALID_REFERENCE"
    status_code = 404


class CouponNotFound(OrderingError):
    error_code = "COUPON_NOT_FOUND"
    status_code = 404


class CouponExpired(OrderingError):
    error_code = "COUPON_EXPIRED"


class CouponExhausted(OrderingError):
    error_code = "COUPON_EXHAUSTED"
    status_code = 409


class CategoryMismatch(OrderingError):
    error_code = "CATEGORY_MISMATCH"


class InsufficientQuantity(OrderingError):
    error_code = "INSUFFICIENT_QUANTITY"


class InsufficientCartAmount(OrderingError):
    error_code = "INSUFFICIENT_CART_AMOUNT"


class TransientStorageError(OrderingError):
    """Сбой соединения/транзакции. Ничего не закоммичено, можно повторить заказ целиком."""
    error_code = "STORAGE_UNAVAILABLE"
    status_code = 503

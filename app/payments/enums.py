"""
Коды состояний и ошибок Click / Payme. Значения диктуются провайдерами, не менять.
"""
from enum import Enum, IntEnum


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentProvider(str, Enum):
    CLICK = "click"
    PAYME = "payme"


class PaymentType(str, Enum):
    COURSE = "course"
    EVENT = "event"
    SUBSCRIPTION = "subscription"


class TransactionState(IntEnum):
    """Payme transaction states."""

    CREATED = 1
    COMPLETED = 2
    CANCELLED = -1
    CANCELLED_AFTER_COMPLETE = -2


class PaymeErrorCode(IntEnum):
    INVALID_AMOUNT = -31001
    TRANSACTION_NOT_FOUND = -31003
    TRANSACTION_CANCELLED = -31007
    UNABLE_TO_PERFORM = -31008
    INVALID_ACCOUNT = -31050


class RpcErrorCode(IntEnum):
    """JSON-RPC level codes used by the Payme merchant API."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INSUFFICIENT_PRIVILEGE = -32504
    INTERNAL_ERROR = -32400


class ClickAction(IntEnum):
    PREPARE = 0
    COMPLETE = 1


class ClickErrorCode(IntEnum):
    SUCCESS = 0
    SIGN_CHECK_FAILED = -1
    INVALID_AMOUNT = -2
    ACTION_NOT_FOUND = -3
    ALREADY_PAID = -4
    USER_NOT_FOUND = -5
    TRANSACTION_NOT_FOUND = -6
    FAILED_TO_UPDATE = -7
    UNKNOWN_ERROR = -8
    TRANSACTION_CANCELLED = -9

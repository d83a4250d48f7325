"""
Schemas Pydantic da API.
"""

from unilib.schemas.base import (
    BaseSchema,
    ErrorResponse,
    MessageResponse,
    Money,
    PaginatedResponse,
    TimestampSchema,
)
from unilib.schemas.book import BookCreate, BookRead, BookUpdate
from unilib.schemas.fine import (
    FinePaymentRead,
    FineRead,
    FineReport,
    FineStatusSummary,
    PayFineRequest,
    PaymentResult,
    WaiveFineRequest,
    WaiverResult,
)
from unilib.schemas.health import HealthResponse
from unilib.schemas.transaction import (
    BorrowRequest,
    BulkReturnItem,
    BulkReturnRequest,
    BulkReturnResult,
    OverdueProcessingResult,
    ReturnRequest,
    ReturnResult,
    TransactionRead,
)
from unilib.schemas.user import (
    QRVerifyRequest,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserRead,
    UserStatusUpdate,
    UserWithToken,
)

__all__ = [
    "BaseSchema",
    "ErrorResponse",
    "MessageResponse",
    "Money",
    "PaginatedResponse",
    "TimestampSchema",
    "BookCreate",
    "BookRead",
    "BookUpdate",
    "FinePaymentRead",
    "FineRead",
    "FineReport",
    "FineStatusSummary",
    "PayFineRequest",
    "PaymentResult",
    "WaiveFineRequest",
    "WaiverResult",
    "HealthResponse",
    "BorrowRequest",
    "BulkReturnItem",
    "BulkReturnRequest",
    "BulkReturnResult",
    "OverdueProcessingResult",
    "ReturnRequest",
    "ReturnResult",
    "TransactionRead",
    "QRVerifyRequest",
    "TokenResponse",
    "UserCreate",
    "UserLogin",
    "UserRead",
    "UserStatusUpdate",
    "UserWithToken",
]

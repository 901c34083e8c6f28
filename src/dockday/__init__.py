from .agents import AgentWhitelist, agent_key, normalize_email, normalize_phone
from .billing import BillingDirectory, QuoteEstimator, QuoteParams, available_credit, credit_check
from .core import Outcome, ValidationResult, receipts_complete
from .models import (
    BookingDraft,
    MonthlyStatement,
    MoneyLine,
    OrderActualCost,
    ReceiptAttachment,
    ShiftOrder,
)
from .services import (
    ActualCostLedger,
    MonthlyStatementService,
    OrderLifecycleService,
    ShiftSubmissionService,
)

__all__ = [
    "ActualCostLedger",
    "AgentWhitelist",
    "BillingDirectory",
    "BookingDraft",
    "MonthlyStatement",
    "MonthlyStatementService",
    "MoneyLine",
    "OrderActualCost",
    "OrderLifecycleService",
    "Outcome",
    "QuoteEstimator",
    "QuoteParams",
    "ReceiptAttachment",
    "ShiftOrder",
    "ShiftSubmissionService",
    "ValidationResult",
    "agent_key",
    "available_credit",
    "credit_check",
    "normalize_email",
    "normalize_phone",
    "receipts_complete",
]

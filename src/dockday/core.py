from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Generic, Iterable, Optional, TypeVar
from uuid import uuid4

from dockday.models import DriverInfo, MoneyLine


ISO_TS = "%Y-%m-%dT%H:%M:%S.%fZ"
PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

T = TypeVar("T")


class DockdayError(Exception):
    """Base class for faults that are not ordinary validation refusals."""


class CatalogError(DockdayError, ValueError):
    """Raised when the static catalog cannot be loaded."""


class UnknownOrderError(DockdayError, KeyError):
    """Raised when an operation names an order id the store does not hold."""


@dataclass
class ValidationResult:
    ok: bool
    blockers: list[str] = field(default_factory=list)

    @classmethod
    def from_blockers(cls, blockers: list[str]) -> "ValidationResult":
        return cls(ok=not blockers, blockers=blockers)


@dataclass
class Outcome(Generic[T]):
    """Result of a state-changing call: the resulting record, or the reasons it was refused."""

    record: Optional[T]
    blockers: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.blockers

    @classmethod
    def refused(cls, *blockers: str, record: Optional[T] = None) -> "Outcome[T]":
        return cls(record=record, blockers=list(blockers))


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime(ISO_TS)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:16].upper()}"


def parse_timestamp(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def period_of(timestamp: str) -> str:
    """Billing period ("YYYY-MM") of a timestamp, in local time; "" if unparseable."""
    parsed = parse_timestamp(timestamp)
    if parsed is None:
        return ""
    return parsed.astimezone().strftime("%Y-%m")


def round_amount(value: float | Decimal) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def ledger_total(lines: Iterable[MoneyLine]) -> int:
    return max(0, round_amount(sum(line.amount for line in lines)))


def missing_receipt_lines(lines: Iterable[MoneyLine]) -> list[MoneyLine]:
    return [line for line in lines if line.amount != 0 and not line.attachments]


def receipts_complete(lines: Iterable[MoneyLine]) -> bool:
    """Every charged line carries at least one attachment; zero lines are exempt."""
    return not missing_receipt_lines(lines)


def driver_blockers(driver: Optional[DriverInfo]) -> list[str]:
    driver = driver or DriverInfo()
    missing = [
        name
        for name in ("name", "phone", "plate", "seats")
        if not (getattr(driver, name) or "").strip()
    ]
    if not missing:
        return []
    return [f"Driver record missing mandatory fields: {', '.join(missing)}"]


def is_period(value: str) -> bool:
    return re.fullmatch(PERIOD_PATTERN, value or "") is not None

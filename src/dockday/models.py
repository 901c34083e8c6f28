from __future__ import annotations

import math
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ContactMethod = Literal["phone", "email"]
TransferType = Literal["airport", "port"]
MealPlan = Literal["standard", "premium"]
DestinationType = Literal["hotel", "port", "other"]
OrderStatus = Literal["review", "in_service", "completed"]
StatementStatus = Literal["draft", "confirmed", "invoiced", "paid"]
Currency = Literal["USD"]


class Record(BaseModel):
    """Base for everything persisted as JSON; field names on the wire are camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# -----------------------------
# Static directory data
# -----------------------------


class WhitelistedAgent(Record):
    agency_company_id: str
    phone: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None


class BillingAccount(Record):
    id: str
    name: str
    currency: Currency = "USD"
    credit_limit: float
    used_amount: float = 0
    term_days: int = 30


class AgencyCompany(Record):
    id: str
    name: str
    accounts: list[BillingAccount] = Field(default_factory=list)


class Tariff(Record):
    currency: Currency = "USD"
    base_service_fee: int = 80
    per_car_fee: int = 120
    pickup_fee: int = 60
    hotel_per_night: int = 140
    meal_per_person: dict[str, int] = Field(
        default_factory=lambda: {"standard": 25, "premium": 45}
    )


# -----------------------------
# Quotes
# -----------------------------


class EstimateLine(Record):
    key: str
    label: str
    amount: int


class EstimateQuote(Record):
    currency: Currency = "USD"
    total: int
    lines: list[EstimateLine] = Field(default_factory=list)


# -----------------------------
# Shift orders
# -----------------------------


class ReceiptAttachment(Record):
    """File metadata only; the binary lives in whatever blob store the caller uses."""

    name: str
    size: int = 0
    mime_type: str = Field(default="", alias="type")
    last_modified: int = 0


class DriverInfo(Record):
    name: Optional[str] = None
    phone: Optional[str] = None
    plate: Optional[str] = None
    seats: Optional[str] = None
    vehicle_type: Optional[str] = None


class OrderAudit(Record):
    approved_by: Optional[str] = None
    approved_at: Optional[str] = None


class OrderData(Record):
    group_size: int = 1
    car_count: int = 1
    transfer_type: Optional[TransferType] = None
    transfer_date_time: Optional[str] = None
    airport_flight_number: Optional[str] = None
    port_vessel_name: Optional[str] = None
    port_vessel_number: Optional[str] = None
    crew_nationalities: Optional[list[str]] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    pickup_point: Optional[str] = None
    pickup_identifier: Optional[str] = None
    pickup_terminal: Optional[str] = None
    pickup_gate: Optional[str] = None
    destination: Optional[str] = None
    destination_type: Optional[DestinationType] = None
    luggage_notes: Optional[str] = None
    special_requests: Optional[str] = None
    need_hotel: bool = False
    hotel_name: Optional[str] = None
    hotel_nights: Optional[int] = None
    need_meal: bool = False
    meal_plan: Optional[MealPlan] = None
    meal_count: Optional[int] = None
    notes: Optional[str] = None


class BookingDraft(OrderData):
    """Shift-change fields of the booking wizard state at submission time."""

    group_size: Optional[int] = None
    car_count: Optional[int] = None
    agent_contact_type: Optional[ContactMethod] = None
    agent_contact_value: Optional[str] = None
    agent_verified: bool = False
    agency_company_id: Optional[str] = None
    billing_account_id: Optional[str] = None
    billing_terms_accepted: bool = False

    def order_data(self) -> OrderData:
        values = self.model_dump(include=set(OrderData.model_fields))
        values["group_size"] = self.group_size or 1
        values["car_count"] = self.car_count or 1
        return OrderData.model_validate(values)


class ShiftOrder(Record):
    id: str
    created_at: str
    agent_key: str
    agent_contact_type: ContactMethod
    agent_contact_value: str
    agency_company_id: Optional[str] = None
    billing_account_id: Optional[str] = None
    estimated_amount: Optional[int] = None
    estimate_lines: Optional[list[EstimateLine]] = None
    status: OrderStatus = "review"
    driver: Optional[DriverInfo] = None
    insurance_attachments: list[ReceiptAttachment] = Field(default_factory=list)
    audit: Optional[OrderAudit] = None
    data: OrderData


# -----------------------------
# Actual costs
# -----------------------------


class MoneyLine(Record):
    key: str
    label: str = ""
    amount: float = 0
    attachments: list[ReceiptAttachment] = Field(default_factory=list)

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        try:
            amount = float(value)
        except (TypeError, ValueError):
            return 0.0
        return amount if math.isfinite(amount) else 0.0

    @field_validator("attachments", mode="before")
    @classmethod
    def _coerce_attachments(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []


class VehicleFacts(Record):
    seats: Optional[str] = None
    kilometers: Optional[str] = None
    hours: Optional[str] = None


class HotelFacts(Record):
    name: Optional[str] = None
    room_type: Optional[str] = None
    nights: Optional[str] = None
    rack_rate: Optional[str] = None
    attachments: list[ReceiptAttachment] = Field(default_factory=list)


class MealFacts(Record):
    restaurant: Optional[str] = None
    count: Optional[str] = None
    price: Optional[str] = None
    attachments: list[ReceiptAttachment] = Field(default_factory=list)


class ActualDetails(Record):
    vehicle: Optional[VehicleFacts] = None
    hotel: Optional[HotelFacts] = None
    meal: Optional[MealFacts] = None
    insurance_attachments: list[ReceiptAttachment] = Field(default_factory=list)


class OrderActualCost(Record):
    order_id: str
    updated_at: str
    lines: list[MoneyLine] = Field(default_factory=list)
    total: int = 0
    notes: Optional[str] = None
    details: Optional[ActualDetails] = None


# -----------------------------
# Monthly statements
# -----------------------------


class StatementTotals(Record):
    estimated: int = 0
    actual: int = 0


class MonthlyStatement(Record):
    id: str
    agency_company_id: str
    period: str
    created_at: str
    updated_at: str
    status: StatementStatus = "draft"
    order_ids: list[str] = Field(default_factory=list)
    totals: StatementTotals = Field(default_factory=StatementTotals)
    notes: Optional[str] = None

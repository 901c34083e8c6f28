from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from dockday.core import ValidationResult, round_amount
from dockday.models import (
    AgencyCompany,
    BillingAccount,
    BookingDraft,
    EstimateLine,
    EstimateQuote,
    MealPlan,
    Tariff,
    TransferType,
)


DEFAULT_TARIFF = Tariff()


class BillingDirectory:
    """Read-only lookup of agency companies and their billing accounts."""

    def __init__(self, companies: Sequence[AgencyCompany]):
        self.companies = list(companies)

    def get_company(self, company_id: Optional[str]) -> Optional[AgencyCompany]:
        if not company_id:
            return None
        return next((c for c in self.companies if c.id == company_id), None)

    def get_account(
        self, company_id: Optional[str], account_id: Optional[str]
    ) -> Optional[BillingAccount]:
        company = self.get_company(company_id)
        if company is None or not account_id:
            return None
        return next((a for a in company.accounts if a.id == account_id), None)

    def default_account(self, company_id: Optional[str]) -> Optional[BillingAccount]:
        company = self.get_company(company_id)
        if company is None or not company.accounts:
            return None
        return company.accounts[0]


def available_credit(account: Optional[BillingAccount]) -> float:
    if account is None:
        return 0
    return max(0, account.credit_limit - account.used_amount)


@dataclass(frozen=True)
class QuoteParams:
    group_size: Optional[int] = None
    car_count: Optional[int] = None
    need_hotel: bool = False
    hotel_nights: Optional[int] = None
    need_meal: bool = False
    meal_plan: Optional[MealPlan] = None
    meal_count: Optional[int] = None
    transfer_type: Optional[TransferType] = None

    @classmethod
    def from_draft(cls, draft: BookingDraft) -> "QuoteParams":
        return cls(
            group_size=draft.group_size,
            car_count=draft.car_count,
            need_hotel=draft.need_hotel,
            hotel_nights=draft.hotel_nights,
            need_meal=draft.need_meal,
            meal_plan=draft.meal_plan,
            meal_count=draft.meal_count,
            transfer_type=draft.transfer_type,
        )


class QuoteEstimator:
    """Deterministic cost projection used for the credit pre-check and the order snapshot."""

    def __init__(self, tariff: Tariff = DEFAULT_TARIFF):
        self.tariff = tariff

    def estimate(self, params: QuoteParams) -> EstimateQuote:
        tariff = self.tariff
        car_count = max(1, params.car_count or 1)
        hotel_nights = max(1, params.hotel_nights or 1) if params.need_hotel else 0
        meal_count = max(1, params.meal_count or params.group_size or 1) if params.need_meal else 0
        plan = "premium" if params.meal_plan == "premium" else "standard"
        meal_per_person = tariff.meal_per_person.get(plan, 0)

        lines = [
            EstimateLine(
                key="car",
                label=f"Vehicles + dispatch (incl. service) ×{car_count}",
                amount=tariff.base_service_fee + tariff.per_car_fee * car_count,
            ),
            EstimateLine(
                key="pickup",
                label="Pickup coordination",
                amount=tariff.pickup_fee if params.transfer_type else 0,
            ),
        ]
        if hotel_nights > 0:
            lines.append(
                EstimateLine(
                    key="hotel",
                    label=f"Hotel budget · {hotel_nights} night(s)",
                    amount=tariff.hotel_per_night * hotel_nights,
                )
            )
        if meal_count > 0:
            lines.append(
                EstimateLine(
                    key="meal",
                    label=f"Meals budget · {meal_count} pax",
                    amount=meal_per_person * meal_count,
                )
            )

        total = max(0, round_amount(sum(line.amount for line in lines)))
        return EstimateQuote(
            currency=tariff.currency,
            total=total,
            lines=[line for line in lines if line.amount > 0],
        )

    def estimate_draft(self, draft: BookingDraft) -> EstimateQuote:
        return self.estimate(QuoteParams.from_draft(draft))


def credit_check(quote: EstimateQuote, account: Optional[BillingAccount]) -> ValidationResult:
    available = available_credit(account)
    if quote.total <= available:
        return ValidationResult(ok=True)
    currency = account.currency if account else quote.currency
    return ValidationResult(
        ok=False,
        blockers=[
            f"Estimated total {currency} {quote.total} exceeds available credit {currency} {available:g}"
        ],
    )


__all__ = [
    "DEFAULT_TARIFF",
    "BillingDirectory",
    "QuoteEstimator",
    "QuoteParams",
    "available_credit",
    "credit_check",
]

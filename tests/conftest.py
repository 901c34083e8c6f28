import pytest

from dockday.api import ServiceContainer, build_services
from dockday.config import Settings
from dockday.db import InMemoryKeyValueStore
from dockday.models import BookingDraft, DriverInfo, MoneyLine, ReceiptAttachment

MARCH_TS = "2026-03-15T12:00:00.000000Z"


def fixed_clock(value: str = MARCH_TS):
    return lambda: value


def receipt(name: str = "receipt.png") -> ReceiptAttachment:
    return ReceiptAttachment(name=name, size=18234, mime_type="image/png", last_modified=1773576000000)


def full_driver() -> DriverInfo:
    return DriverInfo(name="Li Wei", phone="13900000000", plate="SU-A12345", seats="7", vehicle_type="Van")


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def services(store) -> ServiceContainer:
    container = build_services(Settings(), store=store)
    clock = fixed_clock()
    container.lifecycle.clock = clock
    container.ledger.clock = clock
    container.statements.clock = clock
    return container


@pytest.fixture
def verified_draft() -> BookingDraft:
    return BookingDraft(
        agent_contact_type="phone",
        agent_contact_value="+86 138-0013-8000",
        agent_verified=True,
        agency_company_id="agency-demo",
        billing_account_id="acct-usd-30",
        billing_terms_accepted=True,
        group_size=2,
        car_count=1,
        transfer_type="airport",
        need_hotel=True,
        hotel_nights=2,
        hotel_name="Harbour Inn",
        pickup_point="T2 arrivals",
        airport_flight_number="MU5101",
    )


@pytest.fixture
def completed_order(services, verified_draft):
    order = services.submission.submit(verified_draft).record
    services.lifecycle.assign_driver(order.id, full_driver())
    services.lifecycle.approve(order.id)
    return services.lifecycle.complete(order.id).record


def charged_line(key: str, amount: float, *attachments: ReceiptAttachment) -> MoneyLine:
    return MoneyLine(key=key, label=key.title(), amount=amount, attachments=list(attachments))

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font

from dockday.core import parse_timestamp, receipts_complete
from dockday.models import MonthlyStatement, OrderActualCost, ShiftOrder

BILLING_MODE = "Monthly settlement (platform advance)"
NOT_PROVIDED = "Not provided"

TRANSFER_LABELS = {"airport": "Airport pickup", "port": "Port pickup"}
STATUS_LABELS = {
    "draft": "Draft",
    "confirmed": "Confirmed",
    "invoiced": "Invoiced",
    "paid": "Paid",
}


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _local_time(value: Optional[str]) -> str:
    parsed = parse_timestamp(value or "")
    if parsed is None:
        return "TBD"
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M")


def booked_summary(order: ShiftOrder) -> dict[str, str]:
    """Display fields shared by the dispatch note and its structured payload."""
    data = order.data
    hotel = (
        f"{data.hotel_name or NOT_PROVIDED} · {data.hotel_nights or 1} night(s)"
        if data.need_hotel
        else "Not needed"
    )
    meal = (
        f"{'Premium' if data.meal_plan == 'premium' else 'Standard'} · {data.meal_count or data.group_size} pax"
        if data.need_meal
        else "Not needed"
    )
    return {
        "people_cars": f"{data.group_size} pax · {data.car_count} car(s)",
        "transfer": TRANSFER_LABELS.get(data.transfer_type or "", "Transfer"),
        "time": _local_time(data.transfer_date_time),
        "pickup_point": _clean(data.pickup_point) or NOT_PROVIDED,
        "terminal": _clean(data.pickup_terminal) or NOT_PROVIDED,
        "gate": _clean(data.pickup_gate) or NOT_PROVIDED,
        "flight": _clean(data.airport_flight_number) or NOT_PROVIDED,
        "vessel_name": _clean(data.port_vessel_name) or NOT_PROVIDED,
        "vessel_number": _clean(data.port_vessel_number) or NOT_PROVIDED,
        "destination": _clean(data.destination),
        "hotel": hotel,
        "meal": meal,
        "nationalities": ", ".join(data.crew_nationalities or []),
        "pickup_identifier": _clean(data.pickup_identifier) or NOT_PROVIDED,
        "luggage": _clean(data.luggage_notes),
        "notes": _clean(data.notes),
    }


def dispatch_text(order: ShiftOrder) -> str:
    booked = booked_summary(order)
    airport = order.data.transfer_type == "airport"
    port = order.data.transfer_type == "port"
    lines = [
        f"Dispatch · {order.id}",
        f"Created: {_local_time(order.created_at)}",
        f"Agency company: {order.agency_company_id}" if order.agency_company_id else "",
        f"Billing: {BILLING_MODE}",
        "",
        "[Booking]",
        f"Pax/cars: {booked['people_cars']}",
        f"Transfer: {booked['transfer']}",
        f"Time: {booked['time']}",
        f"Pickup point: {booked['pickup_point']}",
        f"Terminal: {booked['terminal']}" if airport else "",
        f"Arrival gate: {booked['gate']}" if airport else "",
        f"Flight: {booked['flight']}" if airport else "",
        f"Vessel: {booked['vessel_name']}" if port else "",
        f"Vessel no.: {booked['vessel_number']}" if port else "",
        f"Destination: {booked['destination']}" if booked["destination"] else "",
        f"Hotel: {booked['hotel']}",
        f"Meals: {booked['meal']}",
        f"Crew nationalities: {booked['nationalities']}" if booked["nationalities"] else "",
        f"Pickup identifier: {booked['pickup_identifier']}",
        f"Luggage/requests: {booked['luggage']}" if booked["luggage"] else "",
        f"Notes: {booked['notes']}" if booked["notes"] else "",
    ]
    return "\n".join(line for line in lines if line)


def dispatch_payload(order: ShiftOrder) -> dict[str, Any]:
    booked = booked_summary(order)
    airport = order.data.transfer_type == "airport"
    port = order.data.transfer_type == "port"
    return {
        "orderId": order.id,
        "createdAt": _local_time(order.created_at),
        "agencyCompanyId": order.agency_company_id or "",
        "billing": BILLING_MODE,
        "booking": {
            "paxCars": booked["people_cars"],
            "transfer": booked["transfer"],
            "time": booked["time"],
            "pickupPoint": booked["pickup_point"],
            "terminal": booked["terminal"] if airport else "",
            "gate": booked["gate"] if airport else "",
            "flight": booked["flight"] if airport else "",
            "vesselName": booked["vessel_name"] if port else "",
            "vesselNumber": booked["vessel_number"] if port else "",
            "destination": booked["destination"] or NOT_PROVIDED,
            "hotel": booked["hotel"],
            "meal": booked["meal"],
            "crewNationalities": booked["nationalities"] or NOT_PROVIDED,
            "pickupIdentifier": booked["pickup_identifier"],
            "luggage": booked["luggage"],
            "notes": booked["notes"],
        },
    }


@dataclass
class StatementExportService:
    """Write a monthly statement and its orders to an .xlsx workbook."""

    export_dir: Path = Path("exports")

    def export(
        self,
        statement: MonthlyStatement,
        orders: Sequence[ShiftOrder],
        actuals: Mapping[str, Optional[OrderActualCost]],
        output_path: Path | str | None = None,
    ) -> Path:
        workbook = Workbook()
        summary = workbook.active
        summary.title = "Statement"

        rows = [
            ("Statement ID", statement.id),
            ("Agency company", statement.agency_company_id),
            ("Period", statement.period),
            ("Status", STATUS_LABELS.get(statement.status, statement.status)),
            ("Orders", len(statement.order_ids)),
            ("Estimated total (USD)", statement.totals.estimated),
            ("Actual total (USD)", statement.totals.actual),
            ("Notes", statement.notes or ""),
        ]
        for label, value in rows:
            summary.append([label, value])
        for cell in summary["A"]:
            cell.font = Font(bold=True)

        sheet = workbook.create_sheet("Orders")
        sheet.append(
            ["Order ID", "Created", "Service status", "Estimated", "Actual", "Receipts", "Receipts complete"]
        )
        for cell in sheet[1]:
            cell.font = Font(bold=True)
        for order in orders:
            actual = actuals.get(order.id)
            sheet.append(
                [
                    order.id,
                    _local_time(order.created_at),
                    order.status,
                    order.estimated_amount or 0,
                    actual.total if actual else None,
                    sum(len(line.attachments) for line in actual.lines) if actual else 0,
                    "yes" if actual and receipts_complete(actual.lines) else "no",
                ]
            )

        if output_path is None:
            output_path = self.export_dir / f"statement-{statement.agency_company_id}-{statement.period}.xlsx"
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        workbook.save(output_path)
        return output_path

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import FileResponse, HTMLResponse
from pydantic import Field

from dockday.agents import AgentWhitelist
from dockday.billing import BillingDirectory, QuoteEstimator
from dockday.config import Settings, load_catalog
from dockday.core import PERIOD_PATTERN, Outcome, UnknownOrderError, period_of
from dockday.db import KeyValueStore, open_sqlite_store
from dockday.exports import StatementExportService, dispatch_payload, dispatch_text
from dockday.models import (
    ActualDetails,
    BookingDraft,
    DriverInfo,
    MoneyLine,
    ReceiptAttachment,
    Record,
    StatementStatus,
)
from dockday.repositories import (
    ActualCostRepository,
    MonthlyStatementRepository,
    ShiftOrderRepository,
)
from dockday.services import (
    ActualCostLedger,
    MonthlyStatementService,
    OrderLifecycleService,
    ShiftSubmissionService,
)
from dockday.ui import render_statement_preview

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    orders: ShiftOrderRepository
    lifecycle: OrderLifecycleService
    submission: ShiftSubmissionService
    ledger: ActualCostLedger
    statements: MonthlyStatementService
    exporter: StatementExportService


def build_services(settings: Settings, store: Optional[KeyValueStore] = None) -> ServiceContainer:
    catalog = load_catalog(settings.CATALOG_PATH)
    store = store if store is not None else open_sqlite_store(settings.DATABASE_PATH)

    orders = ShiftOrderRepository(
        store,
        namespace=settings.NAMESPACE,
        agent_limit=settings.AGENT_HISTORY_LIMIT,
        global_limit=settings.GLOBAL_HISTORY_LIMIT,
    )
    lifecycle = OrderLifecycleService(orders, approver_name=settings.APPROVER_NAME)
    submission = ShiftSubmissionService(
        AgentWhitelist(catalog.whitelist),
        BillingDirectory(catalog.agency_companies),
        QuoteEstimator(catalog.tariff),
        lifecycle,
    )
    ledger = ActualCostLedger(ActualCostRepository(store, settings.NAMESPACE), orders)
    statements = MonthlyStatementService(
        MonthlyStatementRepository(store, settings.NAMESPACE), orders, ledger
    )
    return ServiceContainer(
        settings=settings,
        orders=orders,
        lifecycle=lifecycle,
        submission=submission,
        ledger=ledger,
        statements=statements,
        exporter=StatementExportService(settings.EXPORT_DIR),
    )


class SubmitRequest(Record):
    draft: BookingDraft
    editing_order_id: Optional[str] = None


class ActualCostRequest(Record):
    lines: list[MoneyLine] = Field(default_factory=list)
    notes: Optional[str] = None
    details: Optional[ActualDetails] = None


class InsuranceRequest(Record):
    attachments: list[ReceiptAttachment] = Field(default_factory=list)


class ApproveRequest(Record):
    approved_by: Optional[str] = None


class GenerateStatementRequest(Record):
    agency_company_id: str
    period: str = Field(pattern=PERIOD_PATTERN)


class AdvanceStatementRequest(Record):
    status: StatementStatus


def _unwrap(outcome: Outcome[Any]) -> dict[str, Any]:
    if not outcome.ok:
        raise HTTPException(status_code=409, detail={"blockers": outcome.blockers})
    return outcome.record.to_payload()


def create_app(settings: Optional[Settings] = None, store: Optional[KeyValueStore] = None) -> FastAPI:
    settings = settings or Settings()
    logging.basicConfig(level=settings.LOG_LEVEL)
    services = build_services(settings, store)

    app = FastAPI(title="Dockday Shift Billing API")
    app.state.services = services

    def require_order(order_id: str):
        try:
            return services.lifecycle.require(order_id)
        except UnknownOrderError:
            raise HTTPException(status_code=404, detail="Shift order not found") from None

    def require_statement(agency_company_id: str, period: str):
        statement = services.statements.get(agency_company_id, period)
        if statement is None:
            raise HTTPException(status_code=404, detail="Statement not found")
        return statement

    # -----------------------------
    # Agent flow
    # -----------------------------

    @app.post("/agents/verify")
    def verify_agent(draft: BookingDraft):
        return _unwrap(services.submission.verify_agent(draft))

    @app.post("/quotes")
    def quote(draft: BookingDraft):
        estimate = services.submission.quote(draft)
        check = services.submission.credit_check(draft)
        return {"quote": estimate.to_payload(), "creditOk": check.ok, "blockers": check.blockers}

    @app.post("/shift-orders", status_code=201)
    def submit_order(payload: SubmitRequest):
        if payload.editing_order_id:
            require_order(payload.editing_order_id)
        return _unwrap(services.submission.submit(payload.draft, payload.editing_order_id))

    @app.get("/agents/{agent_key}/shift-orders")
    def agent_orders(agent_key: str):
        return [order.to_payload() for order in services.orders.list_for_agent(agent_key)]

    # -----------------------------
    # Admin: orders
    # -----------------------------

    @app.get("/admin/shift-orders")
    def list_orders(
        agency_company_id: Optional[str] = Query(default=None, alias="agencyCompanyId"),
        period: Optional[str] = None,
    ):
        orders = services.orders.list_all()
        if agency_company_id:
            orders = [o for o in orders if o.agency_company_id == agency_company_id]
        if period:
            orders = [o for o in orders if period_of(o.created_at) == period]
        return [order.to_payload() for order in orders]

    @app.get("/admin/shift-orders/{order_id}")
    def get_order(order_id: str):
        return require_order(order_id).to_payload()

    @app.put("/admin/shift-orders/{order_id}/driver")
    def assign_driver(order_id: str, driver: DriverInfo):
        require_order(order_id)
        return _unwrap(services.lifecycle.assign_driver(order_id, driver))

    @app.put("/admin/shift-orders/{order_id}/insurance")
    def set_insurance(order_id: str, payload: InsuranceRequest):
        require_order(order_id)
        return _unwrap(services.lifecycle.set_insurance_attachments(order_id, payload.attachments))

    @app.post("/admin/shift-orders/{order_id}/approve")
    def approve(order_id: str, payload: Optional[ApproveRequest] = None):
        require_order(order_id)
        approved_by = payload.approved_by if payload else None
        return _unwrap(services.lifecycle.approve(order_id, approved_by))

    @app.post("/admin/shift-orders/{order_id}/complete")
    def complete(order_id: str):
        require_order(order_id)
        return _unwrap(services.lifecycle.complete(order_id))

    @app.get("/admin/shift-orders/{order_id}/dispatch")
    def dispatch(order_id: str):
        order = require_order(order_id)
        return {"text": dispatch_text(order), "payload": dispatch_payload(order)}

    # -----------------------------
    # Admin: actual costs
    # -----------------------------

    @app.get("/admin/shift-orders/{order_id}/actual")
    def get_actual(order_id: str):
        require_order(order_id)
        record = services.ledger.load(order_id)
        if record is None:
            raise HTTPException(status_code=404, detail="No actual costs recorded")
        payload = record.to_payload()
        payload["receiptsComplete"] = services.ledger.receipts_complete(order_id)
        return payload

    @app.put("/admin/shift-orders/{order_id}/actual")
    def record_actual(order_id: str, payload: ActualCostRequest):
        require_order(order_id)
        outcome = services.ledger.record(order_id, payload.lines, payload.notes, payload.details)
        result = _unwrap(outcome)
        result["receiptsComplete"] = services.ledger.receipts_complete(order_id)
        return result

    @app.post("/admin/shift-orders/{order_id}/actual/seed")
    def seed_actual(order_id: str):
        require_order(order_id)
        return _unwrap(services.ledger.seed_from_estimate(order_id))

    # -----------------------------
    # Admin: monthly statements
    # -----------------------------

    @app.post("/admin/statements", status_code=201)
    def generate_statement(payload: GenerateStatementRequest):
        orders = services.orders.list_for_period(payload.agency_company_id, payload.period)
        return _unwrap(
            services.statements.generate(payload.agency_company_id, payload.period, orders)
        )

    @app.get("/admin/statements/{agency_company_id}/{period}")
    def get_statement(agency_company_id: str, period: str):
        statement = require_statement(agency_company_id, period)
        report = services.statements.gate_report(statement.order_ids)
        payload = statement.to_payload()
        payload["gate"] = {
            "missingActual": len(report.missing_actual),
            "missingReceipts": len(report.missing_receipts),
            "blockers": report.blockers,
        }
        return payload

    @app.post("/admin/statements/{agency_company_id}/{period}/refresh")
    def refresh_statement(agency_company_id: str, period: str):
        require_statement(agency_company_id, period)
        orders = services.orders.list_for_period(agency_company_id, period)
        return _unwrap(services.statements.refresh_scope(agency_company_id, period, orders))

    @app.post("/admin/statements/{agency_company_id}/{period}/advance")
    def advance_statement(agency_company_id: str, period: str, payload: AdvanceStatementRequest):
        statement = require_statement(agency_company_id, period)
        return _unwrap(services.statements.advance(statement, payload.status))

    @app.get("/admin/statements/{agency_company_id}/{period}/preview", response_class=HTMLResponse)
    def preview_statement(agency_company_id: str, period: str):
        preview = services.statements.preview(agency_company_id, period)
        return render_statement_preview(preview, agency_company_id, period)

    @app.get("/admin/statements/{agency_company_id}/{period}/export.xlsx")
    def export_statement(agency_company_id: str, period: str):
        statement = require_statement(agency_company_id, period)
        preview = services.statements.preview(agency_company_id, period)
        actuals = {order_id: services.ledger.load(order_id) for order_id in statement.order_ids}
        path = services.exporter.export(statement, preview.orders, actuals)
        return FileResponse(
            path,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            filename=path.name,
        )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app

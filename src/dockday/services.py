from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from dockday.agents import AgentWhitelist, agent_key
from dockday.billing import BillingDirectory, QuoteEstimator, credit_check
from dockday.core import (
    Outcome,
    UnknownOrderError,
    ValidationResult,
    driver_blockers,
    is_period,
    ledger_total,
    new_id,
    receipts_complete,
    round_amount,
    utc_now,
)
from dockday.models import (
    ActualDetails,
    BookingDraft,
    DriverInfo,
    EstimateQuote,
    MoneyLine,
    MonthlyStatement,
    OrderActualCost,
    OrderAudit,
    OrderData,
    ReceiptAttachment,
    ShiftOrder,
    StatementStatus,
    StatementTotals,
)
from dockday.repositories import (
    ActualCostRepository,
    MonthlyStatementRepository,
    ShiftOrderRepository,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], str]

NOT_WHITELISTED = "Not in whitelist. Please contact admin."
STATEMENT_FLOW: tuple[StatementStatus, ...] = ("draft", "confirmed", "invoiced", "paid")


class OrderLifecycleService:
    """Creates shift orders and moves them through review -> in_service -> completed."""

    def __init__(
        self,
        orders: ShiftOrderRepository,
        approver_name: str = "System administrator",
        clock: Clock = utc_now,
    ):
        self.orders = orders
        self.approver_name = approver_name
        self.clock = clock

    def build_order(
        self, draft: BookingDraft, quote: Optional[EstimateQuote] = None
    ) -> Optional[ShiftOrder]:
        if not draft.agent_verified or not draft.agent_contact_type or not draft.agent_contact_value:
            return None
        return ShiftOrder(
            id=new_id("SO"),
            created_at=self.clock(),
            agent_key=agent_key(draft.agent_contact_type, draft.agent_contact_value),
            agent_contact_type=draft.agent_contact_type,
            agent_contact_value=draft.agent_contact_value,
            agency_company_id=draft.agency_company_id,
            billing_account_id=draft.billing_account_id,
            estimated_amount=quote.total if quote else None,
            estimate_lines=list(quote.lines) if quote else None,
            status="review",
            data=draft.order_data(),
        )

    def create_order(
        self, draft: BookingDraft, quote: Optional[EstimateQuote] = None
    ) -> Optional[ShiftOrder]:
        """Persist a new order from a verified draft; an unverified draft yields None."""
        order = self.build_order(draft, quote)
        if order is None:
            logger.info("Order creation refused: agent not verified")
            return None
        self.orders.save(order)
        logger.info("Created shift order %s for %s", order.id, order.agent_key)
        return order

    def replace_order(
        self, order_id: str, draft: BookingDraft, quote: Optional[EstimateQuote] = None
    ) -> Outcome[ShiftOrder]:
        existing = self.require(order_id)
        if existing.status == "completed":
            return Outcome.refused(f"Order {order_id} is completed and can no longer be edited", record=existing)
        rebuilt = self.build_order(draft, quote)
        if rebuilt is None:
            return Outcome.refused("Agent is not verified", record=existing)
        replacement = rebuilt.model_copy(
            update={
                "id": existing.id,
                "created_at": existing.created_at,
                "status": existing.status,
                "driver": existing.driver,
                "insurance_attachments": existing.insurance_attachments,
                "audit": existing.audit,
            }
        )
        return Outcome(record=self.orders.save(replacement))

    def require(self, order_id: str) -> ShiftOrder:
        order = self.orders.get(order_id)
        if order is None:
            raise UnknownOrderError(order_id)
        return order

    def update_data(self, order_id: str, data: OrderData) -> Outcome[ShiftOrder]:
        order = self.require(order_id)
        if order.status == "completed":
            return Outcome.refused(f"Order {order_id} is completed and can no longer be edited", record=order)
        return Outcome(record=self.orders.save(order.model_copy(update={"data": data})))

    def assign_driver(self, order_id: str, driver: DriverInfo) -> Outcome[ShiftOrder]:
        order = self.require(order_id)
        if order.status == "completed":
            return Outcome.refused("Driver details are locked once the order is completed", record=order)
        return Outcome(record=self.orders.save(order.model_copy(update={"driver": driver})))

    def set_insurance_attachments(
        self, order_id: str, attachments: Sequence[ReceiptAttachment]
    ) -> Outcome[ShiftOrder]:
        order = self.require(order_id)
        updated = order.model_copy(update={"insurance_attachments": list(attachments)})
        return Outcome(record=self.orders.save(updated))

    def approve(self, order_id: str, approved_by: Optional[str] = None) -> Outcome[ShiftOrder]:
        order = self.require(order_id)
        if order.status != "review":
            return Outcome.refused(f"Only orders in review can be approved (status: {order.status})", record=order)
        blockers = driver_blockers(order.driver)
        if blockers:
            logger.info("Approval of %s refused: %s", order_id, "; ".join(blockers))
            return Outcome(record=order, blockers=blockers)
        audit = OrderAudit(approved_by=approved_by or self.approver_name, approved_at=self.clock())
        approved = order.model_copy(update={"status": "in_service", "audit": audit})
        logger.info("Order %s approved by %s", order_id, audit.approved_by)
        return Outcome(record=self.orders.save(approved))

    def complete(self, order_id: str) -> Outcome[ShiftOrder]:
        order = self.require(order_id)
        if order.status != "in_service":
            return Outcome.refused(f"Only orders in service can be completed (status: {order.status})", record=order)
        logger.info("Order %s completed", order_id)
        return Outcome(record=self.orders.save(order.model_copy(update={"status": "completed"})))


class ShiftSubmissionService:
    """Agent verification, quoting and submission of the shift-change draft."""

    def __init__(
        self,
        whitelist: AgentWhitelist,
        directory: BillingDirectory,
        estimator: QuoteEstimator,
        lifecycle: OrderLifecycleService,
    ):
        self.whitelist = whitelist
        self.directory = directory
        self.estimator = estimator
        self.lifecycle = lifecycle

    def verify_agent(self, draft: BookingDraft) -> Outcome[BookingDraft]:
        company_id = self.whitelist.resolve(draft.agent_contact_type or "", draft.agent_contact_value)
        if company_id is None:
            return Outcome.refused(NOT_WHITELISTED, record=draft.model_copy(update={"agent_verified": False}))
        account = self.directory.default_account(company_id)
        verified = draft.model_copy(
            update={
                "agent_verified": True,
                "agency_company_id": company_id,
                "billing_account_id": account.id if account else None,
                "billing_terms_accepted": False,
            }
        )
        return Outcome(record=verified)

    def quote(self, draft: BookingDraft) -> EstimateQuote:
        return self.estimator.estimate_draft(draft)

    def credit_check(self, draft: BookingDraft) -> ValidationResult:
        account = self.directory.get_account(draft.agency_company_id, draft.billing_account_id)
        return credit_check(self.quote(draft), account)

    def submit(
        self, draft: BookingDraft, editing_order_id: Optional[str] = None
    ) -> Outcome[ShiftOrder]:
        quote = self.quote(draft)
        blockers: list[str] = []
        if not draft.billing_terms_accepted:
            blockers.append("Billing terms have not been accepted")
        account = self.directory.get_account(draft.agency_company_id, draft.billing_account_id)
        blockers.extend(credit_check(quote, account).blockers)
        if blockers:
            logger.info("Submission refused: %s", "; ".join(blockers))
            return Outcome(record=None, blockers=blockers)

        if editing_order_id:
            return self.lifecycle.replace_order(editing_order_id, draft, quote)
        order = self.lifecycle.create_order(draft, quote)
        if order is None:
            return Outcome.refused("Agent is not verified")
        return Outcome(record=order)


class ActualCostLedger:
    """Receipt-backed actual costs, one overwrite-on-save record per order."""

    def __init__(
        self,
        actuals: ActualCostRepository,
        orders: ShiftOrderRepository,
        clock: Clock = utc_now,
    ):
        self.actuals = actuals
        self.orders = orders
        self.clock = clock

    def load(self, order_id: str) -> Optional[OrderActualCost]:
        return self.actuals.get(order_id)

    def save(
        self,
        order_id: str,
        lines: Sequence[MoneyLine],
        notes: Optional[str] = None,
        details: Optional[ActualDetails] = None,
    ) -> OrderActualCost:
        kept = [line for line in lines if line.amount != 0]
        record = OrderActualCost(
            order_id=order_id,
            updated_at=self.clock(),
            lines=kept,
            total=ledger_total(kept),
            notes=notes,
            details=details,
        )
        return self.actuals.put(record)

    def record(
        self,
        order_id: str,
        lines: Sequence[MoneyLine],
        notes: Optional[str] = None,
        details: Optional[ActualDetails] = None,
    ) -> Outcome[OrderActualCost]:
        blockers = self._recording_blockers(order_id)
        if blockers:
            return Outcome(record=self.load(order_id), blockers=blockers)
        return Outcome(record=self.save(order_id, lines, notes, details))

    def seed_from_estimate(self, order_id: str) -> Outcome[OrderActualCost]:
        blockers = self._recording_blockers(order_id)
        if blockers:
            return Outcome(record=self.load(order_id), blockers=blockers)
        order = self._require_order(order_id)
        if order.estimate_lines:
            lines = [MoneyLine(key=l.key, label=l.label, amount=l.amount) for l in order.estimate_lines]
        else:
            lines = [MoneyLine(key="total", label="Total", amount=order.estimated_amount or 0)]
        return Outcome(record=self.save(order_id, lines))

    def set_line(self, order_id: str, key: str, label: str, amount: float) -> Outcome[OrderActualCost]:
        def change(lines: list[MoneyLine]) -> list[MoneyLine]:
            for index, line in enumerate(lines):
                if line.key == key:
                    lines[index] = MoneyLine(key=key, label=label, amount=amount, attachments=line.attachments)
                    return lines
            return [*lines, MoneyLine(key=key, label=label, amount=amount)]

        return self._edit_lines(order_id, change)

    def attach_receipts(
        self, order_id: str, key: str, attachments: Sequence[ReceiptAttachment]
    ) -> Outcome[OrderActualCost]:
        existing = self.load(order_id)
        if not self._recording_blockers(order_id):
            if existing is None or all(line.key != key for line in existing.lines):
                return Outcome.refused(f"No charged line {key}", record=existing)

        def change(lines: list[MoneyLine]) -> list[MoneyLine]:
            return [
                line.model_copy(update={"attachments": list(attachments)}) if line.key == key else line
                for line in lines
            ]

        return self._edit_lines(order_id, change)

    def remove_line(self, order_id: str, key: str) -> Outcome[OrderActualCost]:
        return self._edit_lines(order_id, lambda lines: [l for l in lines if l.key != key])

    def update_details(self, order_id: str, details: ActualDetails) -> Outcome[OrderActualCost]:
        blockers = self._recording_blockers(order_id)
        existing = self.load(order_id)
        if blockers:
            return Outcome(record=existing, blockers=blockers)
        lines = existing.lines if existing else []
        notes = existing.notes if existing else None
        return Outcome(record=self.save(order_id, lines, notes, details))

    def update_notes(self, order_id: str, notes: Optional[str]) -> Outcome[OrderActualCost]:
        blockers = self._recording_blockers(order_id)
        existing = self.load(order_id)
        if blockers:
            return Outcome(record=existing, blockers=blockers)
        lines = existing.lines if existing else []
        details = existing.details if existing else None
        return Outcome(record=self.save(order_id, lines, notes, details))

    def receipts_complete(self, order_id: str) -> bool:
        record = self.load(order_id)
        return record is not None and receipts_complete(record.lines)

    def receipt_count(self, order_id: str) -> int:
        record = self.load(order_id)
        if record is None:
            return 0
        return sum(len(line.attachments) for line in record.lines)

    def _edit_lines(
        self, order_id: str, change: Callable[[list[MoneyLine]], list[MoneyLine]]
    ) -> Outcome[OrderActualCost]:
        blockers = self._recording_blockers(order_id)
        existing = self.load(order_id)
        if blockers:
            return Outcome(record=existing, blockers=blockers)
        lines = list(existing.lines) if existing else []
        notes = existing.notes if existing else None
        details = existing.details if existing else None
        return Outcome(record=self.save(order_id, change(lines), notes, details))

    def _require_order(self, order_id: str) -> ShiftOrder:
        order = self.orders.get(order_id)
        if order is None:
            raise UnknownOrderError(order_id)
        return order

    def _recording_blockers(self, order_id: str) -> list[str]:
        order = self._require_order(order_id)
        if order.status != "completed":
            return [f"Actual costs can only be recorded for completed orders (status: {order.status})"]
        return []


@dataclass
class GateReport:
    estimated: int = 0
    actual: int = 0
    missing_actual: list[str] = field(default_factory=list)
    missing_receipts: list[str] = field(default_factory=list)

    @property
    def blockers(self) -> list[str]:
        blockers: list[str] = []
        if self.missing_actual:
            blockers.append(
                f"{len(self.missing_actual)} order(s) missing actual costs: {', '.join(self.missing_actual)}"
            )
        if self.missing_receipts:
            blockers.append(
                f"{len(self.missing_receipts)} order(s) missing receipts: {', '.join(self.missing_receipts)}"
            )
        return blockers

    @property
    def can_finalize(self) -> bool:
        return not self.blockers


@dataclass
class StatementPreview:
    statement: Optional[MonthlyStatement]
    orders: list[ShiftOrder]
    report: GateReport


class MonthlyStatementService:
    """Per-(agency, period) aggregation of orders and its draft -> paid approval flow."""

    def __init__(
        self,
        statements: MonthlyStatementRepository,
        orders: ShiftOrderRepository,
        ledger: ActualCostLedger,
        clock: Clock = utc_now,
    ):
        self.statements = statements
        self.orders = orders
        self.ledger = ledger
        self.clock = clock

    def get(self, agency_company_id: str, period: str) -> Optional[MonthlyStatement]:
        return self.statements.get(agency_company_id, period)

    def gate_report(
        self, order_ids: Sequence[str], orders: Optional[Sequence[ShiftOrder]] = None
    ) -> GateReport:
        known = {o.id: o for o in (orders if orders is not None else self.orders.list_all())}
        report = GateReport()
        estimated = 0
        actual = 0
        for order_id in order_ids:
            order = known.get(order_id)
            if order is not None:
                estimated += order.estimated_amount or 0
            record = self.ledger.load(order_id)
            if record is None:
                report.missing_actual.append(order_id)
                continue
            actual += record.total
            if not receipts_complete(record.lines):
                report.missing_receipts.append(order_id)
        report.estimated = round_amount(estimated)
        report.actual = round_amount(actual)
        return report

    def generate(
        self, agency_company_id: str, period: str, orders: Sequence[ShiftOrder]
    ) -> Outcome[MonthlyStatement]:
        if not is_period(period):
            return Outcome.refused(f"Invalid billing period {period!r}, expected YYYY-MM")
        existing = self.get(agency_company_id, period)
        if existing is not None:
            return Outcome.refused(
                f"Statement already exists for {agency_company_id} {period}: {existing.id}",
                record=existing,
            )
        order_ids = [o.id for o in orders]
        report = self.gate_report(order_ids, orders)
        now = self.clock()
        statement = MonthlyStatement(
            id=new_id("ST"),
            agency_company_id=agency_company_id,
            period=period,
            created_at=now,
            updated_at=now,
            status="draft",
            order_ids=order_ids,
            totals=StatementTotals(estimated=report.estimated, actual=report.actual),
        )
        logger.info(
            "Generated statement %s for %s %s with %d order(s)",
            statement.id,
            agency_company_id,
            period,
            len(order_ids),
        )
        return Outcome(record=self.statements.put(statement))

    def refresh_scope(
        self, agency_company_id: str, period: str, orders: Sequence[ShiftOrder]
    ) -> Outcome[MonthlyStatement]:
        if not is_period(period):
            return Outcome.refused(f"Invalid billing period {period!r}, expected YYYY-MM")
        statement = self.get(agency_company_id, period)
        if statement is None:
            return Outcome.refused(f"No statement for {agency_company_id} {period}")
        if statement.status != "draft":
            return Outcome.refused(
                f"Statement scope is frozen once {statement.status}", record=statement
            )
        order_ids = [o.id for o in orders]
        report = self.gate_report(order_ids, orders)
        refreshed = statement.model_copy(
            update={
                "order_ids": order_ids,
                "totals": StatementTotals(estimated=report.estimated, actual=report.actual),
                "updated_at": self.clock(),
            }
        )
        return Outcome(record=self.statements.put(refreshed))

    def advance(
        self, statement: MonthlyStatement, next_status: StatementStatus
    ) -> Outcome[MonthlyStatement]:
        """Move the stored statement one step forward; the caller's copy only identifies it."""
        stored = self.get(statement.agency_company_id, statement.period)
        if stored is None:
            return Outcome.refused(
                f"No statement for {statement.agency_company_id} {statement.period}", record=statement
            )
        statement = stored
        current = STATEMENT_FLOW.index(statement.status)
        if current + 1 >= len(STATEMENT_FLOW) or STATEMENT_FLOW[current + 1] != next_status:
            return Outcome.refused(
                f"Statement cannot move from {statement.status} to {next_status}", record=statement
            )
        report = self.gate_report(statement.order_ids)
        if not report.can_finalize:
            logger.info("Statement %s advance refused: %s", statement.id, "; ".join(report.blockers))
            return Outcome(record=statement, blockers=report.blockers)
        advanced = statement.model_copy(
            update={
                "status": next_status,
                "totals": StatementTotals(estimated=report.estimated, actual=report.actual),
                "updated_at": self.clock(),
            }
        )
        logger.info("Statement %s moved %s -> %s", statement.id, statement.status, next_status)
        return Outcome(record=self.statements.put(advanced))

    def update_notes(self, statement: MonthlyStatement, notes: Optional[str]) -> MonthlyStatement:
        stored = self.get(statement.agency_company_id, statement.period) or statement
        return self.statements.put(stored.model_copy(update={"notes": notes, "updated_at": self.clock()}))

    def preview(self, agency_company_id: str, period: str) -> StatementPreview:
        statement = self.get(agency_company_id, period)
        if statement is not None and statement.order_ids:
            by_id = {o.id: o for o in self.orders.list_all()}
            orders = [by_id[i] for i in statement.order_ids if i in by_id]
            report = self.gate_report(statement.order_ids, list(by_id.values()))
        else:
            orders = self.orders.list_for_period(agency_company_id, period)
            report = self.gate_report([o.id for o in orders], orders)
        return StatementPreview(statement=statement, orders=orders, report=report)

    def settlement_label(self, order_id: str, statement: Optional[MonthlyStatement] = None) -> str:
        record = self.ledger.load(order_id)
        if record is None:
            return "missing_actual"
        if not receipts_complete(record.lines):
            return "missing_receipts"
        if statement is not None and order_id in statement.order_ids:
            if statement.status == "paid":
                return "settled"
            if statement.status in ("confirmed", "invoiced"):
                return statement.status
        return "ready"

from __future__ import annotations

from html import escape

from .exports import STATUS_LABELS
from .services import GateReport, StatementPreview


def render_gate_summary(report: GateReport) -> str:
    if report.can_finalize:
        return (
            '<section class="gate-summary success">'
            "<h2>Reconciliation</h2>"
            "<p>All orders have actual costs and receipts ✅</p>"
            "</section>"
        )

    items = "".join(f"<li>{escape(blocker)}</li>" for blocker in report.blockers)
    return (
        '<section class="gate-summary error">'
        "<h2>Reconciliation</h2>"
        "<p>Record the missing actual costs and receipts before advancing the statement.</p>"
        f"<ul>{items}</ul>"
        "</section>"
    )


def render_statement_preview(preview: StatementPreview, agency_company_id: str, period: str) -> str:
    statement = preview.statement
    if statement is None:
        heading = f"{escape(agency_company_id)} · {escape(period)} · not generated (draft preview)"
    else:
        status = STATUS_LABELS.get(statement.status, statement.status)
        heading = f"{escape(agency_company_id)} · {escape(period)} · {escape(statement.id)} · {escape(status)}"

    rows = "".join(
        "<tr>"
        f"<td>{escape(order.id)}</td>"
        f"<td>{escape(order.status)}</td>"
        f"<td>{order.estimated_amount or 0}</td>"
        "</tr>"
        for order in preview.orders
    )
    return (
        '<article class="statement-preview">'
        f"<h1>{heading}</h1>"
        "<table><thead><tr><th>Order</th><th>Status</th><th>Estimated (USD)</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
        f"<p>Estimated total: USD {preview.report.estimated} · Actual total: USD {preview.report.actual}</p>"
        f"{render_gate_summary(preview.report)}"
        "</article>"
    )

from openpyxl import load_workbook

from conftest import charged_line, receipt
from dockday.exports import StatementExportService, dispatch_payload, dispatch_text
from dockday.services import GateReport, StatementPreview
from dockday.ui import render_gate_summary, render_statement_preview


def test_dispatch_text_for_airport_pickup(services, verified_draft):
    order = services.submission.submit(verified_draft).record

    text = dispatch_text(order)

    assert text.startswith(f"Dispatch · {order.id}")
    assert "Agency company: agency-demo" in text
    assert "Transfer: Airport pickup" in text
    assert "Flight: MU5101" in text
    assert "Terminal: Not provided" in text
    assert "Hotel: Harbour Inn · 2 night(s)" in text
    assert "Meals: Not needed" in text
    assert "Vessel" not in text
    assert "Time: TBD" in text
    assert "Notes:" not in text


def test_dispatch_payload_for_port_pickup(services, verified_draft):
    draft = verified_draft.model_copy(
        update={"transfer_type": "port", "port_vessel_name": "Ever Given", "need_meal": True, "meal_plan": "premium"}
    )
    order = services.submission.submit(draft).record

    payload = dispatch_payload(order)

    assert payload["orderId"] == order.id
    assert payload["booking"]["transfer"] == "Port pickup"
    assert payload["booking"]["vesselName"] == "Ever Given"
    assert payload["booking"]["vesselNumber"] == "Not provided"
    assert payload["booking"]["flight"] == ""
    assert payload["booking"]["meal"] == "Premium · 2 pax"


def test_statement_workbook_export(tmp_path, services, completed_order):
    services.ledger.record(completed_order.id, [charged_line("car", 600, receipt())])
    statement = services.statements.generate("agency-demo", "2026-03", [completed_order]).record
    exporter = StatementExportService(export_dir=tmp_path)

    path = exporter.export(statement, [completed_order], {completed_order.id: services.ledger.load(completed_order.id)})

    assert path == tmp_path / "statement-agency-demo-2026-03.xlsx"
    workbook = load_workbook(path)
    summary = {row[0]: row[1] for row in workbook["Statement"].iter_rows(values_only=True)}
    assert summary["Statement ID"] == statement.id
    assert summary["Status"] == "Draft"
    assert summary["Estimated total (USD)"] == 540
    assert summary["Actual total (USD)"] == 600
    rows = list(workbook["Orders"].iter_rows(values_only=True))
    assert rows[0][0] == "Order ID"
    assert rows[1][0] == completed_order.id
    assert rows[1][4:] == (600, 1, "yes")


def test_gate_summary_lists_blockers():
    html = render_gate_summary(GateReport(missing_actual=["SO-1"], missing_receipts=["SO-<2>"]))

    assert "gate-summary error" in html
    assert "SO-1" in html
    assert "SO-&lt;2&gt;" in html


def test_statement_preview_without_statement():
    html = render_statement_preview(StatementPreview(statement=None, orders=[], report=GateReport()), "agency-demo", "2026-03")

    assert "not generated" in html
    assert "gate-summary success" in html

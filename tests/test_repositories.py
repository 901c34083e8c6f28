import json

from dockday.db import InMemoryKeyValueStore, open_sqlite_store
from dockday.models import MonthlyStatement, OrderActualCost, OrderData, ShiftOrder
from dockday.repositories import ActualCostRepository, MonthlyStatementRepository, ShiftOrderRepository


def make_order(order_id: str, agent: str = "phone:13800138000", created_at: str = "2026-03-15T12:00:00.000000Z"):
    return ShiftOrder(
        id=order_id,
        created_at=created_at,
        agent_key=agent,
        agent_contact_type="phone",
        agent_contact_value=agent.split(":", 1)[1],
        agency_company_id="agency-demo",
        estimated_amount=200,
        data=OrderData(group_size=2),
    )


def test_storage_keys_follow_namespace():
    store = InMemoryKeyValueStore()
    orders = ShiftOrderRepository(store, namespace="dockday")
    orders.save(make_order("SO-1"))
    ActualCostRepository(store).put(OrderActualCost(order_id="SO-1", updated_at="2026-03-20T00:00:00Z"))
    MonthlyStatementRepository(store).put(
        MonthlyStatement(
            id="ST-1",
            agency_company_id="agency-demo",
            period="2026-03",
            created_at="2026-03-31T00:00:00Z",
            updated_at="2026-03-31T00:00:00Z",
        )
    )

    assert store.keys() == [
        "dockday.monthlyStatement.v1.agency-demo.2026-03",
        "dockday.shiftOrderActual.v1.SO-1",
        "dockday.shiftOrders.all.v1",
        "dockday.shiftOrders.v1.phone:13800138000",
    ]


def test_records_are_serialised_with_camel_case_keys():
    store = InMemoryKeyValueStore()
    ShiftOrderRepository(store).save(make_order("SO-1"))

    stored = json.loads(store.get("dockday.shiftOrders.all.v1"))
    assert stored[0]["agentKey"] == "phone:13800138000"
    assert stored[0]["estimatedAmount"] == 200
    assert stored[0]["data"]["groupSize"] == 2
    assert stored[0]["status"] == "review"


def test_agent_history_is_capped_newest_first():
    orders = ShiftOrderRepository(InMemoryKeyValueStore())
    for index in range(51):
        orders.save(make_order(f"SO-{index}"))

    history = orders.list_for_agent("phone:13800138000")
    assert len(history) == 50
    assert history[0].id == "SO-50"
    assert history[-1].id == "SO-1"
    assert all(o.id != "SO-0" for o in history)
    assert len(orders.list_all()) == 51


def test_global_index_is_capped():
    orders = ShiftOrderRepository(InMemoryKeyValueStore(), agent_limit=50, global_limit=3)
    for index in range(4):
        orders.save(make_order(f"SO-{index}", agent=f"phone:1380000000{index}"))

    assert [o.id for o in orders.list_all()] == ["SO-3", "SO-2", "SO-1"]


def test_lookup_by_id_only_sees_global_index():
    orders = ShiftOrderRepository(InMemoryKeyValueStore(), agent_limit=50, global_limit=2)
    for index in range(3):
        orders.save(make_order(f"SO-{index}"))

    assert orders.get("SO-0") is None
    assert orders.get("SO-2") is not None
    assert "SO-0" in [o.id for o in orders.list_for_agent("phone:13800138000")]


def test_save_replaces_existing_entry_and_moves_it_first():
    orders = ShiftOrderRepository(InMemoryKeyValueStore())
    orders.save(make_order("SO-1"))
    orders.save(make_order("SO-2"))

    orders.save(make_order("SO-1").model_copy(update={"status": "in_service"}))

    assert [o.id for o in orders.list_all()] == ["SO-1", "SO-2"]
    assert [o.id for o in orders.list_for_agent("phone:13800138000")] == ["SO-1", "SO-2"]
    assert orders.get("SO-1").status == "in_service"


def test_list_for_period_filters_company_and_month():
    orders = ShiftOrderRepository(InMemoryKeyValueStore())
    orders.save(make_order("SO-MAR"))
    orders.save(make_order("SO-APR", created_at="2026-04-15T12:00:00.000000Z"))
    orders.save(make_order("SO-OTHER").model_copy(update={"agency_company_id": "agency-other"}))

    assert [o.id for o in orders.list_for_period("agency-demo", "2026-03")] == ["SO-MAR"]


def test_malformed_records_read_as_absent():
    store = InMemoryKeyValueStore()
    store.put("dockday.shiftOrders.all.v1", b"{not json")
    store.put("dockday.shiftOrders.v1.phone:1", b'{"an": "object"}')
    store.put("dockday.shiftOrderActual.v1.SO-1", b"[1, 2")
    store.put("dockday.monthlyStatement.v1.agency-demo.2026-03", b'{"id": "ST-1"}')

    orders = ShiftOrderRepository(store)
    assert orders.list_all() == []
    assert orders.list_for_agent("phone:1") == []
    assert orders.get("SO-1") is None
    assert ActualCostRepository(store).get("SO-1") is None
    assert MonthlyStatementRepository(store).get("agency-demo", "2026-03") is None


def test_unreadable_list_entries_are_skipped():
    store = InMemoryKeyValueStore()
    good = make_order("SO-1").to_payload()
    store.put("dockday.shiftOrders.all.v1", json.dumps([{"id": "broken"}, good]).encode("utf-8"))

    assert [o.id for o in ShiftOrderRepository(store).list_all()] == ["SO-1"]


def test_sqlite_store_round_trips_and_overwrites(tmp_path):
    store = open_sqlite_store(tmp_path / "dockday.db")
    actuals = ActualCostRepository(store)

    actuals.put(OrderActualCost(order_id="SO-1", updated_at="t1", total=100))
    actuals.put(OrderActualCost(order_id="SO-1", updated_at="t2", total=250))

    assert actuals.get("SO-1").total == 250
    assert store.get("missing") is None

from __future__ import annotations

import json
import logging
from typing import Optional, TypeVar

from pydantic import ValidationError

from dockday.core import period_of
from dockday.db import KeyValueStore
from dockday.models import MonthlyStatement, OrderActualCost, Record, ShiftOrder

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)


class _JsonRecords:
    def __init__(self, store: KeyValueStore, namespace: str = "dockday"):
        self.store = store
        self.namespace = namespace

    def _read_one(self, key: str, model: type[R]) -> Optional[R]:
        raw = self.store.get(key)
        if not raw:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError:
            logger.warning("Ignoring unreadable record at %s", key)
            return None

    def _read_many(self, key: str, model: type[R]) -> list[R]:
        raw = self.store.get(key)
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except (UnicodeDecodeError, ValueError):
            logger.warning("Ignoring unreadable list at %s", key)
            return []
        if not isinstance(parsed, list):
            return []
        records: list[R] = []
        for item in parsed:
            try:
                records.append(model.model_validate(item))
            except ValidationError:
                logger.warning("Skipping unreadable entry in %s", key)
        return records

    def _write_one(self, key: str, record: Record) -> None:
        self.store.put(key, record.to_json().encode("utf-8"))

    def _write_many(self, key: str, records: list[R]) -> None:
        payload = json.dumps([record.to_payload() for record in records], ensure_ascii=False)
        self.store.put(key, payload.encode("utf-8"))


class ShiftOrderRepository(_JsonRecords):
    """Orders indexed per agent and globally, newest first and capped."""

    def __init__(
        self,
        store: KeyValueStore,
        namespace: str = "dockday",
        agent_limit: int = 50,
        global_limit: int = 500,
    ):
        super().__init__(store, namespace)
        self.agent_limit = agent_limit
        self.global_limit = global_limit

    def agent_storage_key(self, agent_key: str) -> str:
        return f"{self.namespace}.shiftOrders.v1.{agent_key}"

    @property
    def global_storage_key(self) -> str:
        return f"{self.namespace}.shiftOrders.all.v1"

    def list_for_agent(self, agent_key: str) -> list[ShiftOrder]:
        return self._read_many(self.agent_storage_key(agent_key), ShiftOrder)

    def list_all(self) -> list[ShiftOrder]:
        return self._read_many(self.global_storage_key, ShiftOrder)

    def get(self, order_id: str) -> Optional[ShiftOrder]:
        """Look an order up in the global index only.

        The global index keeps the newest ``global_limit`` orders, so an order
        pushed out of it is not found here even while its agent history still
        holds it.
        """
        return next((o for o in self.list_all() if o.id == order_id), None)

    def list_for_period(self, agency_company_id: str, period: str) -> list[ShiftOrder]:
        orders = [
            o
            for o in self.list_all()
            if o.agency_company_id == agency_company_id and period_of(o.created_at) == period
        ]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def save(self, order: ShiftOrder) -> ShiftOrder:
        """Put the order at the head of both indexes, replacing any copy with the same id."""
        agent_key = self.agent_storage_key(order.agent_key)
        self._write_many(agent_key, self._prepend(order, self.list_for_agent(order.agent_key), self.agent_limit))
        self._write_many(
            self.global_storage_key, self._prepend(order, self.list_all(), self.global_limit)
        )
        return order

    @staticmethod
    def _prepend(order: ShiftOrder, existing: list[ShiftOrder], limit: int) -> list[ShiftOrder]:
        without_dup = [o for o in existing if o.id != order.id]
        return [order, *without_dup][:limit]


class ActualCostRepository(_JsonRecords):
    def storage_key(self, order_id: str) -> str:
        return f"{self.namespace}.shiftOrderActual.v1.{order_id}"

    def get(self, order_id: str) -> Optional[OrderActualCost]:
        return self._read_one(self.storage_key(order_id), OrderActualCost)

    def put(self, record: OrderActualCost) -> OrderActualCost:
        self._write_one(self.storage_key(record.order_id), record)
        return record


class MonthlyStatementRepository(_JsonRecords):
    def storage_key(self, agency_company_id: str, period: str) -> str:
        return f"{self.namespace}.monthlyStatement.v1.{agency_company_id}.{period}"

    def get(self, agency_company_id: str, period: str) -> Optional[MonthlyStatement]:
        return self._read_one(self.storage_key(agency_company_id, period), MonthlyStatement)

    def put(self, statement: MonthlyStatement) -> MonthlyStatement:
        self._write_one(self.storage_key(statement.agency_company_id, statement.period), statement)
        return statement

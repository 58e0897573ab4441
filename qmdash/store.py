"""Storage interface for agents, KPI rows and upload records.

Route handlers receive a KpiStore through the get_store() dependency;
MemoryStore is the default, PostgresStore (qmdash.db) is used when the
database is enabled in settings.
"""

import logging
from typing import Protocol

from qmdash.models import Agent, KpiRecord, UploadRecord

log = logging.getLogger(__name__)

KPI_METRICS = ("quality", "aht", "srr", "voc")


class KpiStore(Protocol):
    name: str

    async def list_agents(self) -> list[Agent]: ...

    async def upsert_kpi(self, agent_id: int, date: str, metric: str, value: float | int) -> None: ...

    async def record_upload(self, record: UploadRecord) -> None: ...


class MemoryStore:
    """Process-local store. Data lives for the lifetime of the object."""

    name = "memory"

    def __init__(self, agents: list[Agent] | None = None):
        self.agents: list[Agent] = list(agents or [])
        self.kpis: dict[tuple[int, str], KpiRecord] = {}
        self.uploads: list[UploadRecord] = []

    async def list_agents(self) -> list[Agent]:
        return list(self.agents)

    async def upsert_kpi(self, agent_id: int, date: str, metric: str, value: float | int) -> None:
        if metric not in KPI_METRICS:
            raise ValueError(f"Unknown KPI metric: {metric}")
        key = (agent_id, date)
        record = self.kpis.get(key) or KpiRecord(agent_id=agent_id, date=date)
        self.kpis[key] = record.model_copy(update={metric: value})

    async def record_upload(self, record: UploadRecord) -> None:
        self.uploads.append(record)
        log.info("Upload recorded: %s (%s, %d records)", record.filename, record.status, record.records_processed)


_store: KpiStore = MemoryStore()


def set_store(store: KpiStore) -> None:
    global _store
    _store = store
    log.info("Using %s store", store.name)


def get_store() -> KpiStore:
    return _store

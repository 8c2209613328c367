"""Persistence boundary for reports: append, patch and list by user."""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Protocol

from aura.libs.schemas import db
from aura.libs.schemas.report import Report

logger = logging.getLogger(__name__)


class ReportRepository(Protocol):
    async def append(self, report: Report) -> None:
        ...

    async def patch(self, report: Report) -> None:
        ...

    async def list_by_user(self, user_id: str) -> List[Report]:
        ...


class InMemoryReportRepository:
    def __init__(self) -> None:
        self._rows: Dict[str, Report] = {}

    async def append(self, report: Report) -> None:
        if report.id in self._rows:
            raise ValueError(f"report {report.id} already exists")
        self._rows[report.id] = report

    async def patch(self, report: Report) -> None:
        if report.id not in self._rows:
            raise KeyError(report.id)
        self._rows[report.id] = report

    async def list_by_user(self, user_id: str) -> List[Report]:
        rows = [report for report in self._rows.values() if report.user_id == user_id]
        return sorted(rows, key=lambda report: report.created_at, reverse=True)


class PostgresReportRepository:
    """Reports stored as JSONB rows in ``daily_reports`` via the shared asyncpg pool."""

    async def append(self, report: Report) -> None:
        await db.execute(
            """
            INSERT INTO daily_reports (id, user_id, created_at, pending_analysis, payload)
            VALUES ($1, $2, $3, $4, $5::jsonb)
            """,
            report.id,
            report.user_id,
            report.created_at,
            report.pending_analysis,
            _payload(report),
        )

    async def patch(self, report: Report) -> None:
        status = await db.execute(
            """
            UPDATE daily_reports
            SET pending_analysis = $2, payload = $3::jsonb, updated_at = NOW()
            WHERE id = $1
            """,
            report.id,
            report.pending_analysis,
            _payload(report),
        )
        if status.endswith(" 0"):
            raise KeyError(report.id)

    async def list_by_user(self, user_id: str) -> List[Report]:
        rows = await db.fetch_all(
            "SELECT payload FROM daily_reports WHERE user_id = $1 ORDER BY created_at DESC",
            user_id,
        )
        reports: List[Report] = []
        for row in rows:
            payload = row["payload"]
            if isinstance(payload, str):
                reports.append(Report.model_validate_json(payload))
            else:
                reports.append(Report.model_validate(payload))
        logger.debug("[Store] loaded %s reports for %s", len(reports), user_id)
        return reports


def _payload(report: Report) -> str:
    return json.dumps(report.model_dump(mode="json"), ensure_ascii=False)


__all__ = ["InMemoryReportRepository", "PostgresReportRepository", "ReportRepository"]

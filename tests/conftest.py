"""
Pytest configuration for the KAS backend.

Provides fixtures for:
- Settings pointed at a throwaway SQLite database
- A started app behind fastapi's TestClient
- In-memory transports for realtime unit tests
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from kas.config import Settings
from kas.main import create_app
from kas.models.report import Report

CLASS_DATA = [
    {"class": 1, "headteacher": "王老师"},
    {"class": 2, "headteacher": "李老师"},
    {"class": 3, "headteacher": "张老师"},
]


class FakeTransport:
    """Records outgoing messages; can fail or stall on chosen message types."""

    def __init__(self, fail_types=(), stall_types=()) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.closed_with: Optional[int] = None
        self.fail_types = set(fail_types)
        self.stall_types = set(stall_types)

    async def send_json(self, data: Dict[str, Any]) -> None:
        if data["type"] in self.fail_types:
            raise ConnectionResetError("peer went away")
        if data["type"] in self.stall_types:
            await asyncio.sleep(10)
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def of_type(self, message_type: str) -> List[Dict[str, Any]]:
        return [m for m in self.sent if m["type"] == message_type]


def make_report(
    report_id: int,
    class_id: int,
    is_addition: bool,
    score_delta: int,
    violation_kind: Optional[str] = None,
    submitted_at: Optional[datetime] = None,
) -> Report:
    submitted_at = submitted_at or datetime(2026, 3, 2, 8, 0, report_id % 60, tzinfo=timezone.utc)
    return Report(
        id=report_id,
        class_id=class_id,
        is_addition=is_addition,
        score_delta=score_delta,
        note=f"note {report_id}",
        submitter="李晓鹏",
        violation_kind=violation_kind,
        submitted_at=submitted_at,
        date_partition=submitted_at.date(),
    )


@pytest.fixture
def class_data_file(tmp_path: Path) -> Path:
    path = tmp_path / "class.json"
    path.write_text(json.dumps(CLASS_DATA, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def test_settings(tmp_path: Path, class_data_file: Path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'kas-test.db'}",
        APP_ENV="development",
        HEARTBEAT_INTERVAL_SECONDS=3600,
        CLASS_DATA_FILE=str(class_data_file),
    )


@pytest.fixture
def app(test_settings: Settings) -> FastAPI:
    return create_app(test_settings)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    # entering the client runs the lifespan: database and broadcaster started
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def transport_factory():
    return FakeTransport


@pytest.fixture
def report_factory():
    return make_report

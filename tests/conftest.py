from __future__ import annotations

from datetime import datetime

import pytest
from PyQt6.QtCore import QCoreApplication

from pomotask.core.session_context import SessionContext, StaticIdentity
from pomotask.data.storage import LocalStorage, RecordStore

OWNER = "owner-1"
NOW = datetime(2026, 10, 19, 12, 0)


class Clock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


@pytest.fixture(scope="session")
def qapp():
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture
def store(tmp_path) -> RecordStore:
    records = RecordStore(tmp_path / "records.db")
    records.init_db()
    return records


@pytest.fixture
def local(tmp_path) -> LocalStorage:
    slots = LocalStorage(tmp_path / "local.db")
    slots.init_db()
    return slots


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def ctx(store, local, clock) -> SessionContext:
    return SessionContext(identity=StaticIdentity(OWNER), store=store, local=local, clock=clock)

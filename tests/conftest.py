from __future__ import annotations

from pathlib import Path

import pytest

from scrolls.store import NoteStore

from fakes import TickingClock


@pytest.fixture(autouse=True)
def _no_color(monkeypatch) -> None:
    monkeypatch.setenv("NO_COLOR", "1")


@pytest.fixture
def home(tmp_path) -> Path:
    return tmp_path / "archive"


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def store(home, clock) -> NoteStore:
    return NoteStore(home, clock=clock)

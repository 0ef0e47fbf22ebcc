# tests/test_console_connector.py

from __future__ import annotations

from datetime import timedelta

import pytest

from taskbuddy.connectors.console_connector import render_event, run_console_loop, time_remaining
from taskbuddy.core.events import PersistenceWarning, ReminderFired

from .fakes import NOW, make_task


def test_time_remaining() -> None:
    assert time_remaining(NOW + timedelta(minutes=2, seconds=5), NOW) == "Due in 2m 5s"
    assert time_remaining(NOW + timedelta(seconds=9), NOW) == "Due in 9s"
    assert time_remaining(NOW, NOW) == "Due now"
    assert time_remaining(None, NOW) == ""


def test_render_events() -> None:
    task = make_task(text="Call mom", due_date=NOW + timedelta(minutes=15))
    text = render_event(ReminderFired(task=task, reminder_at=NOW, fired_at=NOW))
    assert text is not None and "Call mom (Due in 15m 0s)" in text

    warn = render_event(PersistenceWarning(op="put_task", message="not saved"))
    assert warn == "[WARN] not saved"


@pytest.mark.asyncio
async def test_console_loop_runs_commands_and_exits(state, capsys) -> None:
    lines = iter(["/tasks", "/exit"])

    await run_console_loop(state, read_line=lambda _prompt: next(lines))

    out = capsys.readouterr().out
    assert "no tasks yet" in out
    assert "Console" in out or "CONSOLE" in out


@pytest.mark.asyncio
async def test_console_loop_stops_on_eof(state) -> None:
    def read_line(_prompt: str) -> str:
        raise EOFError

    await run_console_loop(state, read_line=read_line)


def test_reminder_hint_uses_configured_snooze() -> None:
    task = make_task(text="Call mom")
    fired = ReminderFired(task=task, reminder_at=NOW, fired_at=NOW)

    assert "/snooze to wait 5 minutes" in (render_event(fired) or "")
    assert "/snooze to wait 10 minutes" in (render_event(fired, timedelta(minutes=10)) or "")
    assert "/snooze to wait 1 minute," in (render_event(fired, timedelta(seconds=30)) or "")

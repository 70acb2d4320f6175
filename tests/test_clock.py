from __future__ import annotations

import asyncio

from idlegame.clock import ClockTicket, ProgressClock


def test_ticket_progress_is_clamped() -> None:
    ticket = ClockTicket(task_id=1, duration=10.0, started_at=100.0)

    assert ticket.percent_at(95.0) == 0
    assert ticket.percent_at(105.0) == 50
    assert ticket.percent_at(500.0) == 100
    assert ClockTicket(task_id=2, duration=0.0, started_at=0.0).percent_at(0.0) == 100


def test_zero_duration_ticket_reports_completion() -> None:
    reports: list[tuple[object, int]] = []

    async def scenario():
        clock = ProgressClock()
        clock.on_progress(lambda task_id, percent: reports.append((task_id, percent)))
        clock.start("instant", 0)
        await clock.wait()
        return clock.active

    active = asyncio.run(scenario())

    assert reports == [("instant", 100)]
    assert active is None


def test_initial_progress_shifts_the_start() -> None:
    now = [50.0]

    async def scenario():
        clock = ProgressClock(monotonic=lambda: now[0])
        ticket = clock.start("resume", 20.0, initial_progress=25)
        clock.cancel()
        return ticket

    ticket = asyncio.run(scenario())

    assert ticket.started_at == 45.0
    assert ticket.progress == 25


def test_starting_a_new_ticket_cancels_the_old_one() -> None:
    cancelled: list[bool] = []
    reports: list[tuple[object, int]] = []

    async def on_cancel() -> None:
        cancelled.append(True)

    async def scenario():
        clock = ProgressClock()
        clock.on_progress(lambda task_id, percent: reports.append((task_id, percent)))
        clock.on_cancelled(on_cancel)
        first = clock.start("slow", 60.0)
        await asyncio.sleep(0)
        second = clock.start("fast", 0)
        await clock.wait()
        await asyncio.sleep(0)
        return first, second

    first, second = asyncio.run(scenario())

    assert first.valid is False
    assert second.valid is False
    assert cancelled == [True]
    assert ("fast", 100) in reports
    assert all(percent < 100 for task_id, percent in reports if task_id == "slow")


def test_cancel_without_a_ticket_is_a_no_op() -> None:
    clock = ProgressClock()

    assert clock.cancel() is False
    assert clock.active is None

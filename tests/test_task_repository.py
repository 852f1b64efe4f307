"""
Tests for TaskRepository: creation rules, queries and manual edits.
"""

from datetime import timedelta, timezone

import pytest

from timeledger.domain.errors import ValidationError, ValidationErrorKind


@pytest.mark.asyncio
async def test_create_task_is_not_started(services, acme, clock):
    task = await services.task_repo.create("Design", acme, notes="first pass")

    assert task.start_time is None
    assert task.end_time is None
    assert task.duration == 0
    assert task.project is None
    assert task.notes == "first pass"
    assert task.created_at == clock.current
    assert await services.task_repo.has_tasks()


@pytest.mark.asyncio
async def test_create_rejects_project_of_another_client(services, acme):
    globex = await services.client_repo.create("Globex")
    project = await services.project_repo.create(globex, "Audit")

    with pytest.raises(ValidationError) as exc_info:
        await services.task_repo.create("Review", acme, project)

    assert exc_info.value.kind is ValidationErrorKind.CLIENT_MISMATCH
    assert not await services.task_repo.has_tasks()


@pytest.mark.asyncio
async def test_tasks_for_client_and_project_newest_first(services, acme, clock):
    project = await services.project_repo.create(acme, "Website")
    first = await services.task_repo.create("First", acme, project)
    clock.advance(minutes=1)
    second = await services.task_repo.create("Second", acme)
    clock.advance(minutes=1)
    third = await services.task_repo.create("Third", acme, project)

    assert await services.task_repo.get_tasks_for_client(acme) == [third, second, first]
    assert await services.task_repo.get_tasks_for_project(project) == [third, first]


@pytest.mark.asyncio
async def test_completed_tasks_exclude_unstarted_and_running(services, acme, clock):
    timer = services.timer
    not_started = await services.task_repo.create("Later", acme)
    done = await services.task_repo.create("Done", acme)
    await timer.start_timer(done)
    clock.advance(minutes=20)
    await timer.stop_timer(done)
    running = await services.task_repo.create("Now", acme)
    await timer.start_timer(running)

    completed = await services.task_repo.get_completed_tasks(acme)

    assert completed == [done]
    assert not_started not in completed
    assert running not in completed


@pytest.mark.asyncio
async def test_running_tasks_are_global(services, acme, clock):
    services.timer.enforce_single_timer = False
    globex = await services.client_repo.create("Globex")
    a = await services.task_repo.create("A", acme)
    b = await services.task_repo.create("B", globex)
    await services.task_repo.create("C", globex)

    await services.timer.start_timer(a)
    clock.advance(seconds=5)
    await services.timer.start_timer(b)

    assert await services.task_repo.get_running_tasks() == [b, a]


@pytest.mark.asyncio
async def test_update_times_recomputes_duration(services, acme, clock):
    task = await services.task_repo.create("Call", acme)
    start = clock.current - timedelta(hours=2)

    await services.task_repo.update(task, start_time=start, end_time=start + timedelta(minutes=90))

    assert task.duration == 90 * 60
    assert task.is_completed


@pytest.mark.asyncio
async def test_update_explicit_duration_wins(services, acme, clock):
    task = await services.task_repo.create("Call", acme)
    start = clock.current - timedelta(hours=2)

    await services.task_repo.update(task, start_time=start, end_time=start + timedelta(hours=1), duration=1800)

    assert task.duration == 1800


@pytest.mark.asyncio
async def test_update_rejects_invalid_time_ranges(services, acme, clock):
    task = await services.task_repo.create("Call", acme)
    now = clock.current

    with pytest.raises(ValidationError) as exc_info:
        await services.task_repo.update(task, start_time=now, end_time=now - timedelta(seconds=1))
    assert exc_info.value.kind is ValidationErrorKind.INVALID_TIME_RANGE

    with pytest.raises(ValidationError) as exc_info:
        await services.task_repo.update(task, end_time=now)
    assert exc_info.value.kind is ValidationErrorKind.INVALID_TIME_RANGE

    with pytest.raises(ValidationError) as exc_info:
        await services.task_repo.update(task, duration=-5)
    assert exc_info.value.kind is ValidationErrorKind.INVALID_FIELD

    assert task.start_time is None
    assert task.end_time is None


@pytest.mark.asyncio
async def test_update_cannot_reopen_completed_task(services, acme, clock):
    task = await services.task_repo.create("Call", acme)
    await services.timer.start_timer(task)
    clock.advance(minutes=3)
    await services.timer.stop_timer(task)

    with pytest.raises(ValidationError) as exc_info:
        await services.task_repo.update(task, end_time=None)

    assert exc_info.value.kind is ValidationErrorKind.INVALID_FIELD
    assert task.is_completed


@pytest.mark.asyncio
async def test_assign_project(services, acme, clock):
    project = await services.project_repo.create(acme, "Website")
    task = await services.task_repo.create("Design", acme)

    clock.advance(minutes=1)
    await services.task_repo.assign_project(task, project)
    assert task.project is project
    assert task.modified_at == clock.current
    assert await services.task_repo.get_tasks_for_project(project) == [task]

    await services.task_repo.assign_project(task, None)
    assert task.project is None

    other_project = await services.project_repo.create(
        await services.client_repo.create("Globex"), "Audit"
    )
    with pytest.raises(ValidationError) as exc_info:
        await services.task_repo.assign_project(task, other_project)
    assert exc_info.value.kind is ValidationErrorKind.CLIENT_MISMATCH


@pytest.mark.asyncio
async def test_update_start_time_respects_single_timer(services, acme, clock):
    first = await services.task_repo.create("First", acme)
    second = await services.task_repo.create("Second", acme)
    await services.timer.start_timer(first)

    with pytest.raises(ValidationError) as exc_info:
        await services.task_repo.update(second, start_time=clock.current)

    assert exc_info.value.kind is ValidationErrorKind.TIMER_ALREADY_ACTIVE
    assert second.start_time is None
    assert await services.task_repo.get_running_tasks() == [first]

    # Editing the start of the task that is already running is fine
    earlier = clock.current - timedelta(minutes=10)
    await services.task_repo.update(first, start_time=earlier)
    assert first.start_time == earlier

    # A finished interval never counts as a running timer
    await services.task_repo.update(second, start_time=earlier, end_time=clock.current)
    assert second.is_completed


@pytest.mark.asyncio
async def test_update_start_time_without_single_timer(services, acme, clock):
    services.task_repo.enforce_single_timer = False
    first = await services.task_repo.create("First", acme)
    second = await services.task_repo.create("Second", acme)
    await services.timer.start_timer(first)

    await services.task_repo.update(second, start_time=clock.current)

    assert len(await services.task_repo.get_running_tasks()) == 2


@pytest.mark.asyncio
async def test_aware_start_time_is_stored_as_local_time(services, acme, clock):
    task = await services.task_repo.create("Call", acme)
    start = clock.current - timedelta(minutes=5)

    await services.task_repo.update(task, start_time=start.astimezone(timezone.utc))

    assert task.start_time == start
    assert task.start_time.tzinfo is None

    await services.timer.stop_timer(task)
    assert task.duration == 300


@pytest.mark.asyncio
async def test_aware_end_time_is_stored_as_local_time(services, acme, clock):
    task = await services.task_repo.create("Call", acme)
    start = clock.current - timedelta(hours=1)

    await services.task_repo.update(task, start_time=start, end_time=clock.current.astimezone(timezone.utc))

    assert task.end_time == clock.current
    assert task.end_time.tzinfo is None
    assert task.duration == 3600

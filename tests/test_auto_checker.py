"""Tests for workers/auto_checker.py."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import httpx
from sqlalchemy import select

from database.models import Log, Service
from services.service_checker import ServiceChecker
from workers.auto_checker import AutoChecker, is_due


def _timeout(request):
    raise httpx.ReadTimeout("timed out", request=request)


async def _fresh(session_maker, service_id):
    async with session_maker() as session:
        return await session.get(Service, service_id)


class TestIsDue:

    def test_never_checked_is_due(self):
        assert is_due(Service(minute_interval=10, last_auto_check=None), datetime.utcnow())

    def test_not_due_before_interval(self):
        now = datetime.utcnow()
        service = Service(minute_interval=5, last_auto_check=now - timedelta(minutes=4, seconds=59))
        assert not is_due(service, now)

    def test_due_at_interval(self):
        now = datetime.utcnow()
        assert is_due(Service(minute_interval=5, last_auto_check=now - timedelta(minutes=5)), now)

    def test_missing_interval_means_one_minute(self):
        now = datetime.utcnow()
        assert is_due(Service(minute_interval=None, last_auto_check=now - timedelta(minutes=1)), now)


class TestRunOnce:

    def _auto_checker(self, session_maker, fake_groq, notifier, transport):
        checker = ServiceChecker(fake_groq, notifier=notifier, transport=transport)
        return AutoChecker(session_maker, checker, tick_seconds=60)

    async def test_only_auto_check_services_polled(
            self, session_maker, make_user, make_project, make_service, fake_groq, notifier, transport):
        project = await make_project(await make_user())
        polled = await make_service(project, name="polled", auto_check=True, minute_interval=1)
        manual = await make_service(project, name="manual", auto_check=False)

        checked = await self._auto_checker(session_maker, fake_groq, notifier, transport).run_once()

        assert checked == 1
        assert (await _fresh(session_maker, polled.id)).last_auto_check is not None
        untouched = await _fresh(session_maker, manual.id)
        assert untouched.last_auto_check is None
        assert untouched.last_checked is None
        assert untouched.status == "unknown"

    async def test_not_repolled_before_interval(
            self, session_maker, make_user, make_project, make_service, fake_groq, notifier, transport):
        project = await make_project(await make_user())
        service = await make_service(project, auto_check=True, minute_interval=5)
        auto_checker = self._auto_checker(session_maker, fake_groq, notifier, transport)

        assert await auto_checker.run_once() == 1
        first = (await _fresh(session_maker, service.id)).last_auto_check

        assert await auto_checker.run_once(now=first + timedelta(minutes=2)) == 0
        assert (await _fresh(session_maker, service.id)).last_auto_check == first

        assert await auto_checker.run_once(now=first + timedelta(minutes=5)) == 1

    async def test_silent_when_healthy_and_not_reporting(
            self, session_maker, make_user, make_project, make_service, fake_groq, notifier, transport):
        project = await make_project(await make_user())
        service = await make_service(project, auto_check=True, minute_interval=5, report_success=False)

        await self._auto_checker(session_maker, fake_groq, notifier, transport).run_once()

        async with session_maker() as session:
            assert (await session.execute(select(Log))).scalars().all() == []
        stored = await _fresh(session_maker, service.id)
        assert stored.status == "up"
        assert stored.last_checked is not None
        notifier.assert_not_awaited()

    async def test_down_service_logged_and_alerted(
            self, session_maker, make_user, make_project, make_service,
            fake_groq, notifier, probe_handler, transport):
        probe_handler.handler = _timeout
        project = await make_project(await make_user())
        service = await make_service(project, auto_check=True, minute_interval=1)

        await self._auto_checker(session_maker, fake_groq, notifier, transport).run_once()

        assert (await _fresh(session_maker, service.id)).status == "down"
        async with session_maker() as session:
            logs = (await session.execute(select(Log))).scalars().all()
        assert len(logs) == 1
        assert logs[0].severity == "critical"
        assert logs[0].service_id == service.id
        notifier.assert_awaited_once()

    async def test_one_failure_does_not_stop_others(
            self, session_maker, make_user, make_project, make_service, fake_groq, notifier, transport):
        project = await make_project(await make_user())
        broken = await make_service(project, name="broken", auto_check=True, minute_interval=1)
        healthy = await make_service(project, name="healthy", auto_check=True, minute_interval=1)

        checker = ServiceChecker(fake_groq, notifier=notifier, transport=transport)
        real_check = checker.check

        async def flaky_check(db, service, auto=False):
            if service.id == broken.id:
                raise RuntimeError("boom")
            return await real_check(db, service, auto=auto)

        checker.check = flaky_check
        auto_checker = AutoChecker(session_maker, checker, tick_seconds=60)

        assert await auto_checker.run_once() == 1
        assert auto_checker.stats["errors"] == 1
        assert (await _fresh(session_maker, healthy.id)).status == "up"

    async def test_query_failure_is_contained(self, fake_groq, notifier, transport):
        def broken_session_maker():
            raise RuntimeError("database unavailable")

        checker = ServiceChecker(fake_groq, notifier=notifier, transport=transport)
        auto_checker = AutoChecker(broken_session_maker, checker, tick_seconds=60)

        assert await auto_checker.run_once() == 0
        assert auto_checker.stats["errors"] == 1


class TestLifecycle:

    async def test_start_runs_first_tick_immediately(
            self, session_maker, make_user, make_project, make_service, fake_groq, notifier, transport):
        project = await make_project(await make_user())
        service = await make_service(project, auto_check=True, minute_interval=1)
        checker = ServiceChecker(fake_groq, notifier=notifier, transport=transport)
        auto_checker = AutoChecker(session_maker, checker, tick_seconds=3600)

        auto_checker.start()
        assert auto_checker.running
        await auto_checker.wait_idle()
        auto_checker.stop()

        assert not auto_checker.running
        assert auto_checker.get_stats()["ticks"] == 1
        assert (await _fresh(session_maker, service.id)).last_auto_check is not None

    async def test_start_and_stop_are_idempotent(self, session_maker):
        checker = AsyncMock()
        auto_checker = AutoChecker(session_maker, checker, tick_seconds=3600)

        auto_checker.start()
        auto_checker.start()
        await auto_checker.wait_idle()
        auto_checker.stop()
        auto_checker.stop()

        stats = auto_checker.get_stats()
        assert stats["ticks"] == 1
        assert stats["running"] is False
        assert stats["in_flight"] == 0

"""Tests for services/service_checker.py."""

import httpx
from sqlalchemy import select

from database.models import Log, Service
from services.groq_service import AIAnalysisError
from services.service_checker import ServiceChecker, build_check_log_text, CheckResult, probe_service


def _timeout(request):
    raise httpx.ReadTimeout("timed out", request=request)


async def _logs(session_maker):
    async with session_maker() as session:
        return (await session.execute(select(Log))).scalars().all()


class TestProbeService:

    async def test_2xx_is_up(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(204))
        result = await probe_service("http://svc/health", transport=transport)

        assert result.status == "up"
        assert result.status_code == 204
        assert result.response_time_ms is not None

    async def test_5xx_is_down(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503))
        result = await probe_service("http://svc/health", transport=transport)

        assert result.status == "down"
        assert result.status_code == 503
        assert result.error is None

    async def test_timeout_is_down_with_error(self):
        result = await probe_service("http://svc/health", transport=httpx.MockTransport(_timeout))

        assert result.status == "down"
        assert result.response_time_ms is None
        assert "timed out" in result.error


def test_check_log_text_without_response_time():
    text = build_check_log_text(
        "payments", "http://p/health", CheckResult(status="down", error="refused"), "Checkout"
    )
    assert text == (
        "Service check: payments (http://p/health) is down. Error: refused. "
        "Response time: N/A. Project: Checkout"
    )


class TestServiceCheckerManual:

    async def test_up_check_writes_info_log(self, db, session_maker, make_user, make_project,
                                            make_service, fake_groq, notifier, transport):
        project = await make_project(await make_user())
        service = await make_service(project)
        checker = ServiceChecker(fake_groq, notifier=notifier, transport=transport)

        result = await checker.check(db, service)

        assert result.status == "up"
        assert service.status == "up"
        assert service.last_checked is not None
        assert service.last_auto_check is None
        logs = await _logs(session_maker)
        assert len(logs) == 1
        assert logs[0].severity == "info"
        assert logs[0].check_status == "up"
        assert logs[0].service_id == service.id
        assert logs[0].project_id == project.id
        notifier.assert_not_awaited()

    async def test_manual_check_logs_even_without_report_success(
            self, db, session_maker, make_user, make_project, make_service, fake_groq, notifier, transport):
        project = await make_project(await make_user())
        service = await make_service(project, report_success=False)

        await ServiceChecker(fake_groq, notifier=notifier, transport=transport).check(db, service)

        assert len(await _logs(session_maker)) == 1

    async def test_down_check_logs_critical_and_notifies(
            self, db, session_maker, make_user, make_project, make_service, fake_groq, notifier, probe_handler, transport):
        probe_handler.handler = _timeout
        project = await make_project(await make_user())
        service = await make_service(project, name="orders", url="http://orders/health")

        result = await ServiceChecker(fake_groq, notifier=notifier, transport=transport).check(db, service)

        assert result.status == "down"
        logs = await _logs(session_maker)
        assert len(logs) == 1
        assert logs[0].severity == "critical"
        assert logs[0].check_status == "down"
        assert "is down" in logs[0].text
        notifier.assert_awaited_once()
        message = notifier.await_args.args[1]
        assert "<b>Service Down</b>" in message
        assert "Service: orders" in message

    async def test_adapter_failure_falls_back(
            self, db, session_maker, make_user, make_project, make_service, fake_groq, notifier, probe_handler, transport):
        probe_handler.handler = lambda request: httpx.Response(500)
        fake_groq.analyze_log.side_effect = AIAnalysisError("Groq AI not configured")
        project = await make_project(await make_user())
        service = await make_service(project, name="orders")

        result = await ServiceChecker(fake_groq, notifier=notifier, transport=transport).check(db, service)

        assert result.status == "down"
        logs = await _logs(session_maker)
        assert logs[0].summary == "Service orders status check: down"
        assert logs[0].cause == "Service is not responding"
        assert logs[0].severity == "critical"
        notifier.assert_awaited_once()

    async def test_notifier_failure_does_not_raise(
            self, db, make_user, make_project, make_service, fake_groq, notifier, probe_handler, transport):
        probe_handler.handler = lambda request: httpx.Response(502)
        notifier.side_effect = RuntimeError("telegram down")
        project = await make_project(await make_user())
        service = await make_service(project)

        result = await ServiceChecker(fake_groq, notifier=notifier, transport=transport).check(db, service)
        assert result.status == "down"


class TestServiceCheckerAuto:

    async def test_healthy_without_report_success_is_silent(
            self, db, session_maker, make_user, make_project, make_service, fake_groq, notifier, transport):
        project = await make_project(await make_user())
        service = await make_service(project, auto_check=True, minute_interval=5, report_success=False)

        result = await ServiceChecker(fake_groq, notifier=notifier, transport=transport).check(db, service, auto=True)

        assert result.status == "up"
        assert await _logs(session_maker) == []
        fake_groq.analyze_log.assert_not_awaited()
        notifier.assert_not_awaited()
        async with session_maker() as fresh:
            stored = await fresh.get(Service, service.id)
            assert stored.status == "up"
            assert stored.last_checked is not None
            assert stored.last_auto_check is not None

    async def test_healthy_with_report_success_logs(
            self, db, session_maker, make_user, make_project, make_service, fake_groq, notifier, transport):
        project = await make_project(await make_user())
        service = await make_service(project, auto_check=True, minute_interval=5, report_success=True)

        await ServiceChecker(fake_groq, notifier=notifier, transport=transport).check(db, service, auto=True)

        logs = await _logs(session_maker)
        assert len(logs) == 1
        assert logs[0].severity == "info"

# backend/services/service_checker.py
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional
import logging
import time

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import get_settings
from database.models import Log, Project, Service
from services.groq_service import AIAnalysisError, GroqAIService, LogAnalysis
from services.telegram_service import format_message, send_telegram_notification

logger = logging.getLogger(__name__)
settings = get_settings()

Notifier = Callable[[AsyncSession, str], Awaitable[bool]]


@dataclass
class CheckResult:
    status: str
    response_time_ms: Optional[int] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    checked_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "response_time": self.response_time_ms,
            "status_code": self.status_code,
            "error": self.error,
        }


async def probe_service(
    url: str,
    timeout: float = 5.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CheckResult:
    """GET the URL once; 2xx is up, anything else is down"""
    started = time.perf_counter()
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True) as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        # Timeouts, DNS failures and refused connections all land here
        return CheckResult(status="down", error=str(e) or e.__class__.__name__)

    response_time = int((time.perf_counter() - started) * 1000)
    status = "up" if response.is_success else "down"
    return CheckResult(status=status, response_time_ms=response_time, status_code=response.status_code)


def build_check_log_text(
    name: str, url: str, result: CheckResult, project_name: Optional[str]
) -> str:
    response_time = f"{result.response_time_ms}ms" if result.response_time_ms is not None else "N/A"
    error = f" Error: {result.error}." if result.error else ""
    return (
        f"Service check: {name} ({url}) is {result.status}.{error} "
        f"Response time: {response_time}. Project: {project_name or 'Unknown'}"
    )


def fallback_analysis(name: str, status: str) -> LogAnalysis:
    if status == "down":
        return LogAnalysis(
            summary=f"Service {name} status check: {status}",
            cause="Service is not responding",
            severity="critical",
            fix="Check service configuration and network connectivity",
        )
    return LogAnalysis(
        summary=f"Service {name} status check: {status}",
        cause="Service is operational",
        severity="info",
        fix="No action needed",
    )


class ServiceChecker:
    """Checks one service and records the outcome"""

    def __init__(
        self,
        groq_service: GroqAIService,
        notifier: Notifier = send_telegram_notification,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.groq = groq_service
        self.notifier = notifier
        self.transport = transport
        self.timeout = timeout or settings.SERVICE_CHECK_TIMEOUT

    async def check(self, db: AsyncSession, service: Service, auto: bool = False) -> CheckResult:
        """
        Probe the service and persist status.

        Automatic checks also stamp last_auto_check and honor report_success;
        manual checks always write a check log.
        """
        # Plain copies survive a rollback in the logging step
        snapshot = {
            "id": service.id,
            "name": service.name,
            "url": service.url,
            "project_id": service.project_id,
            "report_success": service.report_success,
        }
        logger.info(f"🔍 Checking service: {snapshot['name']} ({snapshot['url']})")

        result = await probe_service(snapshot["url"], timeout=self.timeout, transport=self.transport)
        result.checked_at = datetime.utcnow()

        service.status = result.status
        service.last_checked = result.checked_at
        if auto:
            service.last_auto_check = result.checked_at
        await db.commit()

        if result.status == "up" and auto and not snapshot["report_success"]:
            return result

        analysis = await self._create_check_log(db, snapshot, result)

        if result.status == "down":
            await self._notify_down(db, snapshot, result, analysis)

        return result

    async def _analyze(self, text: str) -> Optional[LogAnalysis]:
        try:
            return await self.groq.analyze_log(text)
        except AIAnalysisError as e:
            logger.warning(f"⚠️ Check analysis unavailable: {e}")
            return None

    async def _create_check_log(
        self, db: AsyncSession, snapshot: Dict[str, Any], result: CheckResult
    ) -> Optional[LogAnalysis]:
        """Best effort: failures are logged, never raised"""
        try:
            project = await db.get(Project, snapshot["project_id"])
            text = build_check_log_text(
                snapshot["name"], snapshot["url"], result, project.name if project else None
            )

            fallback = fallback_analysis(snapshot["name"], result.status)
            analysis = await self._analyze(text) or fallback

            log = Log(
                text=text,
                project_id=snapshot["project_id"],
                service_id=snapshot["id"],
                summary=analysis.summary or fallback.summary,
                cause=analysis.cause or fallback.cause,
                severity="critical" if result.status == "down" else "info",
                fix=analysis.fix or fallback.fix,
                code_patch=analysis.code_patch,
                ai_raw=analysis.raw,
                check_status=result.status,
            )
            db.add(log)
            await db.commit()
            return analysis
        except Exception as e:
            logger.error(f"❌ Error creating service check log: {e}")
            await db.rollback()
            return None

    async def _notify_down(
        self,
        db: AsyncSession,
        snapshot: Dict[str, Any],
        result: CheckResult,
        analysis: Optional[LogAnalysis],
    ):
        try:
            if analysis is None:
                if result.error:
                    text = f"Service {snapshot['name']} ({snapshot['url']}) is unreachable. Error: {result.error}"
                else:
                    text = f"Service {snapshot['name']} ({snapshot['url']}) is down. Status code: {result.status_code}"
                analysis = await self._analyze(text) or fallback_analysis(snapshot["name"], "down")

            message = format_message("service_down", {
                "name": snapshot["name"],
                "url": snapshot["url"],
                "status": "down",
                "cause": analysis.cause,
                "fix": analysis.fix,
            })
            await self.notifier(db, message)
        except Exception as e:
            logger.error(f"❌ Error sending service notification: {e}")

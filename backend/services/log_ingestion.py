# backend/services/log_ingestion.py
from typing import Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models import Log, QueryOptimizationLog
from services.groq_service import GroqAIService
from services.service_checker import Notifier
from services.telegram_service import format_message

logger = logging.getLogger(__name__)


async def analyze_and_store(
    db: AsyncSession,
    groq: GroqAIService,
    text: str,
    project_id: Optional[str],
    function_name: Optional[str] = None,
    service_id: Optional[str] = None,
) -> Log:
    """Analyze first; nothing is stored when analysis fails"""
    analysis = await groq.analyze_log(text)

    log = Log(
        text=text,
        project_id=project_id,
        service_id=service_id,
        function_name=function_name or None,
        summary=analysis.summary,
        cause=analysis.cause,
        severity=analysis.severity,
        fix=analysis.fix,
        code_patch=analysis.code_patch,
        ai_raw=analysis.raw,
    )
    db.add(log)
    await db.commit()
    return log


async def notify_webhook_error(
    db: AsyncSession,
    notifier: Notifier,
    log: Log,
    project_name: str,
) -> bool:
    message = format_message("webhook_error", {
        "project_name": project_name,
        "function_name": log.function_name or "Unknown",
        "summary": log.summary,
        "cause": log.cause,
        "severity": log.severity,
        "fix": log.fix,
        "error_text": log.text,
        "log_id": log.id,
    })
    return await notifier(db, message)


async def process_webhook_error(
    session_maker: async_sessionmaker,
    groq: GroqAIService,
    notifier: Notifier,
    project_id: str,
    project_name: str,
    error_text: str,
    function_name: Optional[str] = None,
):
    """Runs after the 202 went out, so failures can only be logged"""
    try:
        logger.info(f"📦 Processing webhook error log for project: {project_name}")

        async with session_maker() as session:
            log = await analyze_and_store(
                session, groq, error_text, project_id, function_name=function_name
            )
            logger.info(f"✅ Log saved with ID: {log.id}, Severity: {log.severity}")

            sent = await notify_webhook_error(session, notifier, log, project_name)
            if sent:
                logger.info(f"✅ Telegram notification sent for log: {log.id}")
    except Exception as e:
        logger.error(f"❌ Error processing webhook log: {e}")


async def store_query_optimization(
    db: AsyncSession,
    groq: GroqAIService,
    query: str,
    project_id: str,
    function_name: Optional[str] = None,
) -> QueryOptimizationLog:
    result = await groq.optimize_query(query, function_name)

    record = QueryOptimizationLog(
        query=query,
        project_id=project_id,
        function_name=function_name or None,
        query_type=result.query_type,
        language=result.language,
        is_valid=result.is_valid,
        errors=result.errors,
        optimized_query=result.optimized_query,
        optimization_reason=result.optimization_reason,
        optimizations=[item.model_dump() for item in result.optimizations],
        index_suggestions=[item.model_dump() for item in result.index_suggestions],
        corrected_query=result.corrected_query,
        ai_raw=result.raw,
    )
    db.add(record)
    await db.commit()
    return record

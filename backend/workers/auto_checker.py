# backend/workers/auto_checker.py
import asyncio
import signal
import sys
import logging
from datetime import datetime, timedelta
from typing import Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from config.settings import get_settings
from database.models import Service
from services.service_checker import ServiceChecker

logger = logging.getLogger(__name__)

settings = get_settings()


def is_due(service: Service, now: datetime) -> bool:
    """Never-checked services are due at once"""
    if service.last_auto_check is None:
        return True
    interval = timedelta(minutes=service.minute_interval or 1)
    return now - service.last_auto_check >= interval


class AutoChecker:
    """Polls auto-check services on a fixed tick"""

    def __init__(
        self,
        session_maker: async_sessionmaker,
        checker: ServiceChecker,
        tick_seconds: Optional[float] = None,
    ):
        self.session_maker = session_maker
        self.checker = checker
        self.tick_seconds = tick_seconds or settings.AUTO_CHECK_TICK_SECONDS
        self.running = False
        self._timer_task: Optional[asyncio.Task] = None
        self._tick_tasks: Set[asyncio.Task] = set()

        # Statistics
        self.stats = {
            'ticks': 0,
            'checked': 0,
            'errors': 0,
            'started_at': None
        }

    async def run_once(self, now: Optional[datetime] = None) -> int:
        """Run one tick; returns how many services were checked"""
        checked = 0
        try:
            now = now or datetime.utcnow()
            self.stats['ticks'] += 1

            async with self.session_maker() as session:
                result = await session.execute(select(Service).where(Service.auto_check.is_(True)))
                due_ids = [service.id for service in result.scalars().all() if is_due(service, now)]

            for service_id in due_ids:
                try:
                    async with self.session_maker() as session:
                        service = await session.get(Service, service_id)
                        if service is None or not service.auto_check:
                            continue
                        await self.checker.check(session, service, auto=True)
                        checked += 1
                        self.stats['checked'] += 1
                except Exception as e:
                    logger.error(f"❌ [Auto-Check] Error checking service {service_id}: {e}")
                    self.stats['errors'] += 1

        except Exception as e:
            logger.error(f"❌ [Auto-Check] Error running auto-check: {e}")
            self.stats['errors'] += 1

        return checked

    def _spawn_tick(self):
        if self._tick_tasks:
            logger.warning("⚠️ [Auto-Check] Previous tick still running, skipping this one")
            return
        task = asyncio.create_task(self.run_once())
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)

    async def _timer(self):
        while self.running:
            await asyncio.sleep(self.tick_seconds)
            try:
                self._spawn_tick()
            except Exception as e:
                logger.error(f"❌ [Auto-Check] Fatal error in auto-checker: {e}")

    def start(self):
        """Schedule the recurring tick and run one right away"""
        if self.running:
            return
        self.running = True
        self.stats['started_at'] = datetime.utcnow()

        self._spawn_tick()
        self._timer_task = asyncio.create_task(self._timer())
        logger.info(f"✅ Auto-checker started (tick every {self.tick_seconds}s)")

    def stop(self):
        """Cancel the timer; checks already in flight run to completion"""
        if not self.running:
            return
        self.running = False
        if self._timer_task:
            self._timer_task.cancel()
            self._timer_task = None
        logger.info("⏹️ Auto-checker stopped")

    async def wait_idle(self):
        """Wait for in-flight ticks to finish"""
        if self._tick_tasks:
            await asyncio.gather(*list(self._tick_tasks), return_exceptions=True)

    def get_stats(self) -> dict:
        return {
            **self.stats,
            'running': self.running,
            'in_flight': len(self._tick_tasks),
        }


# Main execution
async def main():
    from database.connection import async_session_maker, close_db, init_db
    from services.groq_service import GroqAIService

    await init_db()
    auto_checker = AutoChecker(async_session_maker, ServiceChecker(GroqAIService()))
    stopped = asyncio.Event()

    def signal_handler(signum):
        logger.info(f"📡 Received signal {signum}")
        auto_checker.stop()
        stopped.set()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, signal_handler, signum)

    try:
        auto_checker.start()
        await stopped.wait()
        await auto_checker.wait_idle()
    except Exception as e:
        logger.error(f"❌ Auto-checker failed: {e}")
        auto_checker.stop()
        sys.exit(1)
    finally:
        await close_db()

if __name__ == "__main__":
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    asyncio.run(main())

import asyncio
import logging
from typing import Dict, List, Optional, Set

from isodoc.core.monitoring import ACTIVE_SYNC_TIMERS
from isodoc.repositories.client_repository import ClientRepository
from isodoc.repositories.user_repository import UserRepository
from isodoc.services.sync_service import SyncReport, SyncService

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Registry of per-tenant sync timers, owned by the application.

    Every pass for a tenant, scheduled or manual, runs under that tenant's
    lock, so two passes for the same tenant never interleave their
    duplicate-check, insert and obsolescence steps.
    """

    def __init__(self, sync_service: SyncService, session_factory, interval_seconds: Optional[int] = None):
        self.sync_service = sync_service
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds or sync_service.settings.SYNC_INTERVAL_SECONDS
        self._timers: Dict[int, asyncio.Task] = {}
        self._locks: Dict[int, asyncio.Lock] = {}
        self._manual_runs: Set[asyncio.Task] = set()
        self._last_reports: Dict[int, SyncReport] = {}

    def lock_for(self, tenant_id: int) -> asyncio.Lock:
        if tenant_id not in self._locks:
            self._locks[tenant_id] = asyncio.Lock()
        return self._locks[tenant_id]

    async def run_pass(
        self,
        tenant_id: int,
        folder_id_or_url: Optional[str] = None,
        acting_user_id: Optional[int] = None,
    ) -> Optional[SyncReport]:
        async with self.lock_for(tenant_id):
            report = await self.sync_service.run_sync(folder_id_or_url, tenant_id, acting_user_id)
        if report is not None:
            self._last_reports[tenant_id] = report
        return report

    async def _timer_loop(self, tenant_id: int) -> None:
        while True:
            await self.run_pass(tenant_id)
            await asyncio.sleep(self.interval_seconds)

    def start(self, tenant_id: int) -> None:
        """Replace any timer for the tenant; the first pass runs immediately."""
        self.stop(tenant_id)
        self._timers[tenant_id] = asyncio.create_task(
            self._timer_loop(tenant_id), name=f"sync-tenant-{tenant_id}"
        )
        ACTIVE_SYNC_TIMERS.set(len(self._timers))
        logger.info(f"Sync timer started for tenant {tenant_id} (every {self.interval_seconds}s)")

    def stop(self, tenant_id: int) -> bool:
        task = self._timers.pop(tenant_id, None)
        if task is None:
            return False
        task.cancel()
        ACTIVE_SYNC_TIMERS.set(len(self._timers))
        logger.info(f"Sync timer stopped for tenant {tenant_id}")
        return True

    def is_running(self, tenant_id: int) -> bool:
        return tenant_id in self._timers

    def active_tenants(self) -> List[int]:
        return sorted(self._timers)

    def last_report(self, tenant_id: int) -> Optional[SyncReport]:
        return self._last_reports.get(tenant_id)

    def trigger(
        self,
        tenant_id: int,
        folder_id_or_url: Optional[str] = None,
        acting_user_id: Optional[int] = None,
    ) -> asyncio.Task:
        """Run one pass in the background and return immediately."""
        task = asyncio.create_task(
            self.run_pass(tenant_id, folder_id_or_url, acting_user_id), name=f"sync-manual-{tenant_id}"
        )
        self._manual_runs.add(task)
        task.add_done_callback(self._manual_runs.discard)
        logger.info(f"Manual sync triggered for tenant {tenant_id}")
        return task

    async def start_all(self) -> List[int]:
        """Start a timer for every tenant that has an admin user."""
        started = []
        async with self.session_factory() as session:
            clients = await ClientRepository(session).list()
            users = UserRepository(session)
            for client in clients:
                admin = await users.find_tenant_admin(client.id)
                if admin is None:
                    logger.warning(f"No admin found for client {client.id} ({client.name}), sync not started")
                    continue
                self.start(client.id)
                started.append(client.id)
        logger.info(f"Sync started for {len(started)} of {len(clients)} clients")
        return started

    async def stop_all(self) -> None:
        pending = list(self._timers.values()) + list(self._manual_runs)
        for tenant_id in list(self._timers):
            self.stop(tenant_id)
        for task in list(self._manual_runs):
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

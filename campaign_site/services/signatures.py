"""Petition signature counter and recent-signer ticker."""

import asyncio
import logging
from datetime import timedelta
from typing import Callable, Optional
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import delete, insert, select, update
from campaign_site.models.petition import Petition, SignerDisplay
from .brevo import BrevoService
from .cache import (
    BREVO_SYNC_INTERVAL,
    RECENT_SIGNERS_TTL,
    SIGNATURE_COUNT_TTL,
    SYNC_LOCK_TTL,
    TTLCache,
)
from .database import (
    DEFAULT_PETITION_ID,
    DEFAULT_PETITION_LIST_ID,
    Database,
    as_utc,
    petitions,
    signatures,
    utcnow,
)
from .names import NameRegistry

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(hours=24)
MAX_RECENT_ROWS = 1000
MAX_RECENT_LIMIT = 10


def _count_key(petition_id: str) -> str:
    return f"signature_count_{petition_id}"


def _recent_key(petition_id: str, limit: int) -> str:
    return f"recent_signers_{petition_id}_{limit}"


class SignatureService:
    """
    Signature counts kept in the database and reconciled against Brevo.

    The local count is incremented on every signature; the CRM list size is
    the source of truth and is pulled in the background when the stored
    value is older than the sync interval.
    """

    def __init__(
        self,
        db: Database,
        cache: TTLCache,
        brevo: BrevoService,
        names: NameRegistry,
        clock: Callable = utcnow,
    ):
        self.db = db
        self.cache = cache
        self.brevo = brevo
        self.names = names
        self._clock = clock
        self._background_tasks: set[asyncio.Task] = set()

    async def get_count(self, petition_id: str = DEFAULT_PETITION_ID) -> dict:
        """
        Get the signature count and goal for a petition.

        Triggers a background sync from Brevo if the stored count is stale.

        Returns:
            Dict with "count" and "goal"
        """
        cache_key = _count_key(petition_id)
        cached = self.cache.get(cache_key)
        if cached:
            return cached

        row = await run_in_threadpool(self._petition_state, petition_id)
        if row is None:
            return {"count": 0, "goal": 100}

        last_synced = as_utc(row.last_synced_at)
        is_stale = (
            last_synced is None
            or (self._clock() - last_synced).total_seconds() > BREVO_SYNC_INTERVAL
        )
        if is_stale and row.brevo_list_id:
            self._schedule_sync(petition_id, row.brevo_list_id)

        result = {"count": row.count or 0, "goal": row.goal or 100}
        self.cache.set(cache_key, result, SIGNATURE_COUNT_TTL)
        return result

    def _petition_state(self, petition_id: str):
        with self.db.engine.connect() as conn:
            return conn.execute(
                select(
                    petitions.c.count,
                    petitions.c.goal,
                    petitions.c.brevo_list_id,
                    petitions.c.last_synced_at,
                ).where(petitions.c.id == petition_id)
            ).first()

    def _schedule_sync(self, petition_id: str, list_id: int) -> None:
        task = asyncio.create_task(self.sync_from_brevo(petition_id, list_id))
        self._background_tasks.add(task)
        task.add_done_callback(self._on_sync_done)

    def _on_sync_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background Brevo sync failed: {task.exception()}")

    async def wait_for_background_syncs(self) -> None:
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def sync_from_brevo(self, petition_id: str, list_id: int) -> bool:
        """
        Pull the list size from Brevo into the local count.

        A cache entry acts as a lock so only one sync per petition runs.

        Returns:
            True if the count was updated
        """
        lock_key = f"sync_lock_{petition_id}"
        if self.cache.get(lock_key):
            return False
        self.cache.set(lock_key, True, SYNC_LOCK_TTL)

        try:
            if not self.brevo.is_configured:
                logger.warning("BREVO_API_KEY not set, skipping sync")
                return False

            count = await self.brevo.get_list_subscriber_count(list_id)
            await run_in_threadpool(self.update_count, petition_id, count, synced=True)
            logger.info(f"Auto-synced from Brevo: {petition_id} = {count} signatures")
            return True
        finally:
            self.cache.delete(lock_key)

    async def get_recent_signers(
        self, petition_id: str = DEFAULT_PETITION_ID, limit: int = 5
    ) -> list[SignerDisplay]:
        """Get up to `limit` signers from the last 24 hours, newest first."""
        cache_key = _recent_key(petition_id, limit)
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        now = self._clock()
        rows = await run_in_threadpool(self._recent_rows, petition_id, limit, now)

        recent = [
            SignerDisplay(
                display_name=self.names.display_name_for_social_proof(row.first_name),
                minutes_ago=max(0, int((now - as_utc(row.created_at)).total_seconds() // 60)),
            )
            for row in rows
        ]

        self.cache.set(cache_key, recent, RECENT_SIGNERS_TTL)
        return recent

    def _recent_rows(self, petition_id: str, limit: int, now):
        with self.db.engine.connect() as conn:
            return conn.execute(
                select(signatures.c.first_name, signatures.c.created_at)
                .where(signatures.c.petition_id == petition_id)
                .where(signatures.c.created_at > now - RECENT_WINDOW)
                .order_by(signatures.c.created_at.desc(), signatures.c.id.desc())
                .limit(limit)
            ).all()

    def add_signature(self, petition_id: str, first_name: str) -> dict:
        """
        Record a signature locally.

        Increments the petition count, appends to the recent-signers table
        and prunes it to the last 24 hours (at most 1000 rows per petition).

        Returns:
            Dict with "newCount" and "displayName"
        """
        now = self._clock()

        with self.db.engine.begin() as conn:
            exists = conn.execute(
                select(petitions.c.id).where(petitions.c.id == petition_id)
            ).first()
            if not exists:
                conn.execute(
                    insert(petitions).values(
                        id=petition_id,
                        name=petition_id,
                        goal=10000,
                        brevo_list_id=DEFAULT_PETITION_LIST_ID,
                        count=0,
                    )
                )

            conn.execute(
                update(petitions)
                .where(petitions.c.id == petition_id)
                .values(count=petitions.c.count + 1)
            )
            new_count = conn.execute(
                select(petitions.c.count).where(petitions.c.id == petition_id)
            ).scalar_one()

            conn.execute(
                insert(signatures).values(
                    petition_id=petition_id, first_name=first_name, created_at=now
                )
            )

            conn.execute(delete(signatures).where(signatures.c.created_at < now - RECENT_WINDOW))

            newest = (
                select(signatures.c.id)
                .where(signatures.c.petition_id == petition_id)
                .order_by(signatures.c.created_at.desc(), signatures.c.id.desc())
                .limit(MAX_RECENT_ROWS)
            )
            conn.execute(
                delete(signatures)
                .where(signatures.c.petition_id == petition_id)
                .where(signatures.c.id.not_in(newest))
            )

        self._invalidate(petition_id)

        return {
            "newCount": new_count,
            "displayName": self.names.display_name_for_social_proof(first_name),
        }

    def _invalidate(self, petition_id: str) -> None:
        self.cache.delete(_count_key(petition_id))
        for limit in range(1, MAX_RECENT_LIMIT + 1):
            self.cache.delete(_recent_key(petition_id, limit))

    def update_count(self, petition_id: str, count: int, synced: bool = False) -> None:
        """Overwrite the stored count (e.g. from a cron-triggered sync)."""
        values: dict = {"count": count}
        if synced:
            values["last_synced_at"] = self._clock()

        with self.db.engine.begin() as conn:
            conn.execute(update(petitions).where(petitions.c.id == petition_id).values(**values))

        self.cache.delete(_count_key(petition_id))

    def get_petition(self, petition_id: str) -> Optional[Petition]:
        with self.db.engine.connect() as conn:
            row = conn.execute(select(petitions).where(petitions.c.id == petition_id)).first()

        if row is None:
            return None
        return self._row_to_petition(row)

    def get_all_petitions(self) -> dict:
        """
        Get all petitions for the admin dashboard.

        Returns:
            Dict with "petitions" (keyed by id) and "lastSyncedAt"
        """
        with self.db.engine.connect() as conn:
            rows = conn.execute(select(petitions)).all()

        result: dict[str, Petition] = {}
        last_synced_at = None
        for row in rows:
            petition = self._row_to_petition(row)
            result[petition.id] = petition
            if petition.last_synced_at and (
                last_synced_at is None or petition.last_synced_at > last_synced_at
            ):
                last_synced_at = petition.last_synced_at

        return {"petitions": result, "lastSyncedAt": last_synced_at}

    async def sync_all_from_brevo(self) -> dict:
        """
        Force a sync of every petition from its Brevo list.

        Returns:
            Dict with "synced" petition ids and "errors" messages
        """
        if not self.brevo.is_configured:
            return {"synced": [], "errors": ["BREVO_API_KEY not configured"]}

        rows = await run_in_threadpool(self._petition_lists)

        synced: list[str] = []
        errors: list[str] = []

        for row in rows:
            try:
                count = await self.brevo.get_list_subscriber_count(row.brevo_list_id)
                await run_in_threadpool(self.update_count, row.id, count, synced=True)
                synced.append(row.id)
            except Exception as e:
                errors.append(f"{row.id}: {e}")

        for row in rows:
            self.cache.delete(_count_key(row.id))

        return {"synced": synced, "errors": errors}

    def _petition_lists(self):
        with self.db.engine.connect() as conn:
            return conn.execute(select(petitions.c.id, petitions.c.brevo_list_id)).all()

    @staticmethod
    def _row_to_petition(row) -> Petition:
        last_synced = as_utc(row.last_synced_at)
        return Petition(
            id=row.id,
            name=row.name,
            goal=row.goal,
            brevo_list_id=row.brevo_list_id,
            count=row.count,
            last_synced_at=last_synced.isoformat() if last_synced else None,
        )

"""
Scheduler pour les tâches automatiques de synchronisation
- Détection des BAL modifiées depuis leur publication (chaque minute)
- Détection des conflits avec l'API de dépôt (toutes les 5 minutes)
- Republication des BAL outdated non modifiées depuis un moment (chaque minute)

Le scheduler est le SEUL responsable des relances: une erreur sur une BAL
est journalisée et la BAL sera retraitée au prochain passage.
"""

import logging
from datetime import timedelta
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from config import now, now_iso, SYNC_OUTDATED_DELAY_MINUTES
from models.base_locale import BaseLocale, StatusBaseLocale, StatusSync
from services.errors import BalError

logger = logging.getLogger("scheduler")


class TaskScheduler:
    """Gestionnaire de tâches planifiées"""

    def __init__(self, db, publication_service, api_depot):
        self.scheduler = AsyncIOScheduler(timezone="Europe/Paris")
        self.db = db
        self.publication_service = publication_service
        self.api_depot = api_depot
        self.last_conflict_check: Optional[str] = None

    def start(self):
        """Démarre le scheduler avec toutes les tâches"""
        self.scheduler.add_job(
            self.detect_outdated,
            CronTrigger(minute="*"),
            id="detect_outdated",
            name="Détection des BAL modifiées",
            replace_existing=True
        )

        self.scheduler.add_job(
            self.detect_conflict,
            CronTrigger(minute="*/5"),
            id="detect_conflict",
            name="Détection des conflits de publication",
            replace_existing=True
        )

        self.scheduler.add_job(
            self.sync_outdated,
            CronTrigger(minute="*"),
            id="sync_outdated",
            name="Republication des BAL outdated",
            replace_existing=True
        )

        self.scheduler.start()
        logger.info("Scheduler démarré avec succès")

    def stop(self):
        """Arrête le scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler arrêté")

    # ==================== TÂCHES PLANIFIÉES ====================

    async def _find_bases_locales(self, query: dict):
        docs = await self.db.bases_locales.find(
            {**query, "deleted_at": None},
            {"_id": 0}
        ).to_list(None)
        return [BaseLocale.model_validate(doc) for doc in docs]

    async def detect_outdated(self) -> int:
        """synced → outdated pour les BAL modifiées depuis la dernière publication"""
        bases_locales = await self._find_bases_locales({
            "status": StatusBaseLocale.PUBLISHED.value,
            "sync.status": StatusSync.SYNCED.value,
        })

        count = 0
        for base_locale in bases_locales:
            try:
                if await self.publication_service.detect_outdated(base_locale):
                    count += 1
            except BalError as e:
                logger.warning(f"[SCHEDULER] detect_outdated BAL {base_locale.id}: {e.message}")

        if count:
            logger.info(f"[SCHEDULER] {count} BAL passée(s) en outdated")
        return count

    async def detect_conflict(self) -> int:
        """Réconcilie les BAL dont la commune a reçu une autre révision"""
        since = self.last_conflict_check
        self.last_conflict_check = now_iso()

        try:
            revisions = await self.api_depot.get_current_revisions(since)
        except BalError as e:
            # On retentera depuis la même date au prochain passage
            self.last_conflict_check = since
            logger.error(f"[SCHEDULER] detect_conflict: {e.message}")
            return 0

        count = 0
        for revision in revisions:
            if not revision.code_commune:
                continue
            bases_locales = await self._find_bases_locales({
                "commune": revision.code_commune,
                "status": StatusBaseLocale.PUBLISHED.value,
                "sync.last_uploaded_revision_id": {"$ne": revision.id},
            })
            for base_locale in bases_locales:
                try:
                    sync = await self.publication_service.update_sync_info(base_locale)
                    if sync and sync.status == StatusSync.CONFLICT:
                        count += 1
                except BalError as e:
                    logger.warning(f"[SCHEDULER] detect_conflict BAL {base_locale.id}: {e.message}")

        if count:
            logger.info(f"[SCHEDULER] {count} BAL passée(s) en conflit")
        return count

    async def sync_outdated(self) -> int:
        """
        Republie les BAL outdated non mises en pause et non modifiées depuis
        SYNC_OUTDATED_DELAY_MINUTES (évite une révision par modification).
        """
        limit = (now() - timedelta(minutes=SYNC_OUTDATED_DELAY_MINUTES)).isoformat()
        bases_locales = await self._find_bases_locales({
            "status": StatusBaseLocale.PUBLISHED.value,
            "sync.status": StatusSync.OUTDATED.value,
            "sync.is_paused": {"$ne": True},
            "updated_at": {"$lt": limit},
        })

        count = 0
        for base_locale in bases_locales:
            try:
                await self.publication_service.synchronize(base_locale.id)
                count += 1
            except Exception as e:
                logger.error(f"[SCHEDULER] Échec synchronisation BAL {base_locale.id}: {str(e)}")

        if count:
            logger.info(f"[SCHEDULER] {count} BAL synchronisée(s)")
        return count

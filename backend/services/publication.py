"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Mes Adresses - Publication / Synchronisation avec l'API de dépôt            ║
║                                                                              ║
║  SEUL CE MODULE modifie le champ sync d'une Base Adresse Locale              ║
║                                                                              ║
║  TRANSITIONS DU SYNC:                                                        ║
║  (aucun)  → synced      première publication (BAL draft)                     ║
║  synced   → outdated    modification locale depuis la dernière publication   ║
║  outdated → synced      republication (ou fichier identique au dépôt)        ║
║  synced|outdated → conflict   une autre révision a été publiée               ║
║  conflict → synced      publication forcée uniquement                        ║
║                                                                              ║
║  INVARIANTS:                                                                 ║
║  - sync.status="conflict" IMPLIQUE is_paused=True ET status="replaced"       ║
║    (écrits dans la MÊME mise à jour)                                         ║
║  - toute écriture du sync est conditionnée au statut de sync lu              ║
║    (compare-and-swap MongoDB)                                                ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from datetime import timezone
from typing import Optional, Dict, Any

from config import now
from email_service import format_publication_notification
from models.api_depot import StatusHabilitation
from models.base_locale import (
    BaseLocale,
    BaseLocaleSync,
    StatusBaseLocale,
    StatusSync,
    ACTIVE_SYNC_STATUSES,
)
from services.bases_locales import BaseLocaleRepository
from services.errors import PreconditionFailed
from services.export_csv import ExportCsvService, hash_file

logger = logging.getLogger("publication")


class PublicationService:

    def __init__(self, db, api_depot, mailer, export_csv: Optional[ExportCsvService] = None):
        self.db = db
        self.repository = BaseLocaleRepository(db)
        self.api_depot = api_depot
        self.mailer = mailer
        self.export_csv = export_csv or ExportCsvService(db)

    # ════════════════════════════════════════════════════════════════════════
    # SYNCHRONISATION
    # ════════════════════════════════════════════════════════════════════════

    async def synchronize(self, bal_id: str, force: bool = False) -> BaseLocale:
        """
        Publie ou republie la BAL si nécessaire.

        - BAL draft: première publication
        - sinon: réconciliation, puis republication si outdated
          (ou conflict avec force=True)

        Raises:
            NotFound si la BAL n'existe pas
            PreconditionFailed si une condition préalable n'est pas remplie
            RemoteServiceError si l'API de dépôt échoue
        """
        base_locale = await self.repository.find_one_or_fail(bal_id)
        await self._check_preconditions(base_locale)

        # Première publication
        if base_locale.status == StatusBaseLocale.DRAFT:
            file = await self.export_csv.export_to_csv(base_locale)
            revision = await self.api_depot.publish_new_revision(
                base_locale.commune,
                base_locale.id,
                file,
                base_locale.habilitation_id,
            )
            await self._notify_publication(base_locale)
            logger.info(f"[PUBLICATION] BAL {bal_id} première publication: révision {revision.id}")
            return await self.mark_as_synced(
                base_locale,
                revision.id,
                expected={"status": StatusBaseLocale.DRAFT.value},
            )

        sync = await self.update_sync_info(base_locale)

        if sync and (
            sync.status == StatusSync.OUTDATED
            or (sync.status == StatusSync.CONFLICT and force)
        ):
            file = await self.export_csv.export_to_csv(base_locale)
            file_hash = hash_file(file)
            current_revision = await self.api_depot.get_current_revision(base_locale.commune)
            current_file = current_revision.get_file("bal") if current_revision else None
            expected = {"sync.status": sync.status}

            # Le fichier a changé depuis la révision courante: on publie
            if not current_file or current_file.hash != file_hash:
                revision = await self.api_depot.publish_new_revision(
                    base_locale.commune,
                    base_locale.id,
                    file,
                    base_locale.habilitation_id,
                )
                logger.info(f"[PUBLICATION] BAL {bal_id} republiée: révision {revision.id} (force={force})")
                return await self.mark_as_synced(base_locale, revision.id, expected=expected)

            # Contenu identique: pas de nouvelle révision, on garde la dernière révision envoyée
            logger.info(f"[PUBLICATION] BAL {bal_id} identique à la révision {current_revision.id}")
            return await self.mark_as_synced(base_locale, sync.last_uploaded_revision_id, expected=expected)

        return await self.repository.find_one_or_fail(bal_id)

    async def _check_preconditions(self, base_locale: BaseLocale):
        if base_locale.status == StatusBaseLocale.DEMO:
            raise PreconditionFailed(
                "La synchronisation n’est pas possible pour les Bases Adresses Locales de démo"
            )

        if not base_locale.habilitation_id:
            raise PreconditionFailed("Aucune habilitation rattachée à cette Base Adresse Locale")

        habilitation = await self.api_depot.find_habilitation(base_locale.habilitation_id)

        if habilitation.status != StatusHabilitation.ACCEPTED.value:
            raise PreconditionFailed("L’habilitation rattachée n’est pas une habilitation valide")

        expires_at = habilitation.expires_at
        if expires_at and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if not expires_at or expires_at <= now():
            raise PreconditionFailed("L’habilitation rattachée a expiré")

        numero_count = await self.db.numeros.count_documents({
            "bal_id": base_locale.id,
            "deleted_at": None,
        })
        if numero_count == 0:
            raise PreconditionFailed("La base locale ne possède aucune adresse")

    async def _notify_publication(self, base_locale: BaseLocale):
        """Email de notification: un échec ne doit JAMAIS annuler la publication"""
        try:
            email = format_publication_notification(base_locale)
            sent = await self.mailer.send_mail(email, base_locale.emails)
            if not sent:
                logger.warning(f"[PUBLICATION] Notification non envoyée pour BAL {base_locale.id}")
        except Exception as e:
            logger.error(f"[PUBLICATION] Erreur notification BAL {base_locale.id}: {str(e)}")

    # ════════════════════════════════════════════════════════════════════════
    # RÉCONCILIATION
    # ════════════════════════════════════════════════════════════════════════

    async def update_sync_info(self, base_locale: BaseLocale) -> Optional[BaseLocaleSync]:
        """
        Recalcule le statut de sync d'une BAL publiée à partir de la révision
        courante de l'API de dépôt. Idempotent à état distant constant.
        """
        if base_locale.status != StatusBaseLocale.PUBLISHED:
            return base_locale.sync

        sync = base_locale.sync
        if not sync or sync.status not in ACTIVE_SYNC_STATUSES:
            raise PreconditionFailed('Le statut de synchronisation doit être "synced" ou "outdated"')

        current_revision = await self.api_depot.get_current_revision(base_locale.commune)

        # Une autre révision a été publiée par-dessus la nôtre
        if not current_revision or current_revision.id != sync.last_uploaded_revision_id:
            return await self._update_sync(base_locale, {
                "status": StatusSync.CONFLICT.value,
                "is_paused": True,
            })

        # Aucune modification locale depuis la dernière réconciliation
        if base_locale.updated_at == sync.current_updated:
            if sync.status == StatusSync.SYNCED:
                return sync
            return await self._update_sync(base_locale, {"status": StatusSync.SYNCED.value})

        if sync.status == StatusSync.OUTDATED:
            return sync

        return await self._update_sync(base_locale, {"status": StatusSync.OUTDATED.value})

    async def detect_outdated(self, base_locale: BaseLocale) -> bool:
        """
        Passage synced → outdated sans appel au dépôt (détection périodique).
        Retourne True si la BAL a été marquée outdated.
        """
        sync = base_locale.sync
        if (
            base_locale.status != StatusBaseLocale.PUBLISHED
            or not sync
            or sync.status != StatusSync.SYNCED
            or base_locale.updated_at == sync.current_updated
        ):
            return False

        await self._update_sync(base_locale, {"status": StatusSync.OUTDATED.value})
        return True

    async def _update_sync(self, base_locale: BaseLocale, sync_changes: Dict[str, Any]) -> BaseLocaleSync:
        sync = BaseLocaleSync.model_validate({**base_locale.sync.model_dump(), **sync_changes})
        changes: Dict[str, Any] = {"sync": sync.model_dump()}
        if sync.status == StatusSync.CONFLICT:
            changes["status"] = StatusBaseLocale.REPLACED.value

        updated = await self.repository.compare_and_set(
            base_locale.id,
            {"sync.status": base_locale.sync.status},
            changes,
        )
        if not updated:
            raise PreconditionFailed("Le statut de synchronisation a été modifié entre-temps")

        logger.info(
            f"[PUBLICATION] BAL {base_locale.id} sync: {base_locale.sync.status} -> {sync.status}"
            + (" | status -> replaced" if "status" in changes else "")
        )
        return sync

    async def mark_as_synced(
        self,
        base_locale: BaseLocale,
        last_uploaded_revision_id: str,
        expected: Dict[str, Any]
    ) -> BaseLocale:
        sync = BaseLocaleSync(
            status=StatusSync.SYNCED,
            is_paused=False,
            current_updated=base_locale.updated_at,
            last_uploaded_revision_id=last_uploaded_revision_id,
        )
        updated = await self.repository.compare_and_set(
            base_locale.id,
            expected,
            {"status": StatusBaseLocale.PUBLISHED.value, "sync": sync.model_dump()},
        )
        if not updated:
            logger.error(
                f"[PUBLICATION] BAL {base_locale.id} modifiée pendant la publication "
                f"(révision {last_uploaded_revision_id} non enregistrée)"
            )
            raise PreconditionFailed("Le statut de synchronisation a été modifié entre-temps")

        return await self.repository.find_one_or_fail(base_locale.id)

    # ════════════════════════════════════════════════════════════════════════
    # PAUSE / REPRISE
    # ════════════════════════════════════════════════════════════════════════

    async def pause(self, bal_id: str) -> BaseLocale:
        return await self._set_is_paused(bal_id, True)

    async def resume(self, bal_id: str) -> BaseLocale:
        return await self._set_is_paused(bal_id, False)

    async def _set_is_paused(self, bal_id: str, is_paused: bool) -> BaseLocale:
        updated = await self.repository.compare_and_set(
            bal_id,
            {"sync.status": {"$in": ACTIVE_SYNC_STATUSES}},
            {"sync.is_paused": is_paused},
        )
        if not updated:
            await self.repository.find_one_or_fail(bal_id)
            raise PreconditionFailed(
                "Le statut de synchronisation doit être actif pour modifier l’état de pause"
            )

        logger.info(f"[PUBLICATION] BAL {bal_id} is_paused={is_paused}")
        return await self.repository.find_one_or_fail(bal_id)

"""
Bases Adresses Locales - Repository et cycle de vie

Le repository est le SEUL point d'accès en écriture à la collection
bases_locales. Les écritures sur le sync passent par compare_and_set
(mise à jour conditionnelle atomique côté MongoDB).
"""

import uuid
import logging
from typing import Optional, Dict, Any

from config import now_iso
from models.base_locale import BaseLocale, BaseLocaleCreate, StatusBaseLocale
from services.errors import NotFound, PreconditionFailed

logger = logging.getLogger("bases_locales")


class BaseLocaleRepository:
    """Accès à la collection bases_locales (snapshots immuables)"""

    def __init__(self, db):
        self.collection = db.bases_locales

    async def find_by_id(self, bal_id: str) -> Optional[BaseLocale]:
        doc = await self.collection.find_one({"id": bal_id}, {"_id": 0})
        return BaseLocale.model_validate(doc) if doc else None

    async def find_one_or_fail(self, bal_id: str) -> BaseLocale:
        base_locale = await self.find_by_id(bal_id)
        if not base_locale:
            raise NotFound(f"Base Locale {bal_id} not found")
        return base_locale

    async def insert(self, doc: Dict[str, Any]) -> BaseLocale:
        await self.collection.insert_one(dict(doc))
        return BaseLocale.model_validate(doc)

    async def exists(self, bal_id: str) -> bool:
        return await self.collection.count_documents({"id": bal_id}) > 0

    async def compare_and_set(
        self,
        bal_id: str,
        expected: Dict[str, Any],
        changes: Dict[str, Any]
    ) -> bool:
        """
        Applique `changes` uniquement si le document correspond encore à `expected`.
        Retourne False si un autre processus a modifié la BAL entre-temps.
        """
        result = await self.collection.update_one(
            {"id": bal_id, **expected},
            {"$set": changes}
        )
        return result.matched_count > 0

    async def touch(self, bal_id: str, updated_at: Optional[str] = None) -> str:
        updated_at = updated_at or now_iso()
        await self.collection.update_one(
            {"id": bal_id},
            {"$set": {"updated_at": updated_at}}
        )
        return updated_at


class BaseLocaleService:
    """Cycle de vie d'une BAL (hors publication)"""

    def __init__(self, db):
        self.repository = BaseLocaleRepository(db)

    async def find_one_or_fail(self, bal_id: str) -> BaseLocale:
        return await self.repository.find_one_or_fail(bal_id)

    async def create(self, payload: BaseLocaleCreate) -> BaseLocale:
        now = now_iso()
        doc = {
            "id": str(uuid.uuid4()),
            "nom": payload.nom,
            "commune": payload.commune,
            "emails": payload.emails,
            "habilitation_id": payload.habilitation_id,
            "status": StatusBaseLocale.DEMO.value if payload.demo else StatusBaseLocale.DRAFT.value,
            "sync": None,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        base_locale = await self.repository.insert(doc)
        logger.info(f"[BAL] Création {base_locale.id} ({base_locale.commune}) status={base_locale.status}")
        return base_locale

    async def touch(self, bal_id: str, updated_at: Optional[str] = None) -> str:
        """Met à jour le updated_at de la BAL (déclenche la détection outdated)"""
        return await self.repository.touch(bal_id, updated_at)

    async def transform_to_draft(self, bal_id: str, nom: str, email: str) -> BaseLocale:
        """Transforme une BAL de démo en brouillon publiable"""
        updated = await self.repository.compare_and_set(
            bal_id,
            {"status": StatusBaseLocale.DEMO.value},
            {
                "status": StatusBaseLocale.DRAFT.value,
                "nom": nom,
                "emails": [email],
                "updated_at": now_iso(),
            }
        )
        if not updated:
            await self.repository.find_one_or_fail(bal_id)
            raise PreconditionFailed("La Base Adresse Locale n’est pas une Base Adresse Locale de démonstration.")
        return await self.repository.find_one_or_fail(bal_id)

    async def soft_delete(self, bal_id: str) -> BaseLocale:
        await self.repository.find_one_or_fail(bal_id)
        await self.repository.compare_and_set(bal_id, {}, {"deleted_at": now_iso()})
        logger.info(f"[BAL] Archivage {bal_id}")
        return await self.repository.find_one_or_fail(bal_id)

    async def restore(self, bal_id: str) -> BaseLocale:
        await self.repository.find_one_or_fail(bal_id)
        await self.repository.compare_and_set(bal_id, {}, {"deleted_at": None})
        logger.info(f"[BAL] Restauration {bal_id}")
        return await self.repository.find_one_or_fail(bal_id)

"""
Toponymes (lieux-dits) - CRUD avec mise à jour de la BAL
"""

import uuid
import logging
from typing import List

from config import now_iso
from models.base_locale import BaseLocale
from models.toponyme import Toponyme, ToponymeCreate, ToponymeUpdate
from models.voie import clean_nom, clean_nom_alt
from services.errors import NotFound, BadInput

logger = logging.getLogger("toponymes")


class ToponymeService:

    def __init__(self, db, base_locale_service):
        self.db = db
        self.collection = db.toponymes
        self.base_locale_service = base_locale_service

    async def find_one_or_fail(self, toponyme_id: str) -> Toponyme:
        doc = await self.collection.find_one({"id": toponyme_id}, {"_id": 0})
        if not doc:
            raise NotFound(f"Toponyme {toponyme_id} not found")
        return Toponyme.model_validate(doc)

    async def find_many(self, query: dict) -> List[Toponyme]:
        docs = await self.collection.find(query, {"_id": 0}).to_list(None)
        return [Toponyme.model_validate(doc) for doc in docs]

    async def insert(self, bal_id: str, payload: ToponymeCreate, session=None) -> Toponyme:
        """Insère un toponyme SANS toucher la BAL (utilisé dans les transactions)"""
        now = now_iso()
        doc = {
            "id": str(uuid.uuid4()),
            "bal_id": bal_id,
            "nom": clean_nom(payload.nom),
            "nom_alt": clean_nom_alt(payload.nom_alt),
            "positions": [p.model_dump() for p in payload.positions],
            "parcelles": payload.parcelles,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        await self.collection.insert_one(dict(doc), session=session)
        return Toponyme.model_validate(doc)

    async def create(self, base_locale: BaseLocale, payload: ToponymeCreate) -> Toponyme:
        toponyme = await self.insert(base_locale.id, payload)
        await self.base_locale_service.touch(base_locale.id, toponyme.updated_at)
        return toponyme

    async def update(self, toponyme: Toponyme, payload: ToponymeUpdate) -> Toponyme:
        changes = payload.model_dump(exclude_none=True)
        if not changes:
            raise BadInput("Aucune modification")
        if "nom" in changes:
            changes["nom"] = clean_nom(changes["nom"])
        if "nom_alt" in changes:
            changes["nom_alt"] = clean_nom_alt(changes["nom_alt"])

        changes["updated_at"] = now_iso()
        result = await self.collection.update_one(
            {"id": toponyme.id, "deleted_at": None},
            {"$set": changes}
        )
        if result.matched_count > 0:
            await self.base_locale_service.touch(toponyme.bal_id, changes["updated_at"])
        return await self.find_one_or_fail(toponyme.id)

    async def delete(self, toponyme: Toponyme):
        result = await self.collection.delete_one({"id": toponyme.id})
        if result.deleted_count > 0:
            # Les numéros rattachés perdent leur toponyme
            await self.db.numeros.update_many(
                {"toponyme_id": toponyme.id},
                {"$set": {"toponyme_id": None}}
            )
            await self.base_locale_service.touch(toponyme.bal_id)

    async def soft_delete(self, toponyme: Toponyme) -> Toponyme:
        result = await self.collection.update_one(
            {"id": toponyme.id, "deleted_at": None},
            {"$set": {"deleted_at": now_iso()}}
        )
        if result.matched_count > 0:
            await self.base_locale_service.touch(toponyme.bal_id)
        return await self.find_one_or_fail(toponyme.id)

    async def restore(self, toponyme: Toponyme) -> Toponyme:
        result = await self.collection.update_one(
            {"id": toponyme.id, "deleted_at": {"$ne": None}},
            {"$set": {"deleted_at": None}}
        )
        if result.matched_count > 0:
            await self.base_locale_service.touch(toponyme.bal_id)
        return await self.find_one_or_fail(toponyme.id)

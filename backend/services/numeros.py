"""
Numéros - CRUD et mises à jour en cascade

Toute mutation d'un numéro:
- recalcule le centroïde des voies concernées
- met à jour le updated_at des voies / toponymes concernés
- met à jour le updated_at de la BAL (une seule fois par opération)
"""

import uuid
import logging
from typing import Optional, List, Dict, Any, Iterable

from config import now_iso
from models.numero import Numero, NumeroCreate, NumeroUpdate, normalize_suffixe
from models.voie import Voie, TypeNumerotation
from services import geometry
from services.errors import NotFound, BadInput

logger = logging.getLogger("numeros")


class NumeroService:

    def __init__(self, db, base_locale_service):
        self.db = db
        self.collection = db.numeros
        self.base_locale_service = base_locale_service

    # ==================== LECTURE ====================

    async def find_one_or_fail(self, numero_id: str) -> Numero:
        doc = await self.collection.find_one({"id": numero_id}, {"_id": 0})
        if not doc:
            raise NotFound(f"Numero {numero_id} not found")
        return Numero.model_validate(doc)

    async def find_many(self, query: Dict[str, Any], session=None) -> List[Numero]:
        docs = await self.collection.find(query, {"_id": 0}, session=session).to_list(None)
        return [Numero.model_validate(doc) for doc in docs]

    async def count(self, query: Dict[str, Any], session=None) -> int:
        return await self.collection.count_documents(query, session=session)

    async def find_centroid_by_voie(self, voie_id: str) -> Optional[Dict[str, Any]]:
        """Centroïde de toutes les positions des numéros actifs de la voie (None si aucune)"""
        numeros = await self.find_many({"voie_id": voie_id, "deleted_at": None})
        points = [p.point for n in numeros for p in n.positions]
        if not points:
            return None
        return geometry.centroid(geometry.feature_collection(points))

    # ==================== ÉCRITURE ====================

    async def create(self, voie: Voie, payload: NumeroCreate) -> Numero:
        if voie.deleted_at:
            raise BadInput(f"Voie {voie.id} is deleted")
        if payload.toponyme_id:
            await self._check_toponyme(payload.toponyme_id, voie.bal_id)

        now = now_iso()
        doc = {
            "id": str(uuid.uuid4()),
            "bal_id": voie.bal_id,
            "voie_id": voie.id,
            "toponyme_id": payload.toponyme_id,
            "numero": payload.numero,
            "suffixe": normalize_suffixe(payload.suffixe),
            "positions": [p.model_dump() for p in payload.positions],
            "parcelles": payload.parcelles,
            "certifie": payload.certifie,
            "comment": payload.comment,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        await self.collection.insert_one(dict(doc))
        numero = Numero.model_validate(doc)

        await self._cascade(voie.bal_id, [voie.id], [numero.toponyme_id], updated_at=now)
        return numero

    async def update(self, numero: Numero, payload: NumeroUpdate) -> Numero:
        changes = payload.model_dump(exclude_none=True)
        if not changes:
            raise BadInput("Aucune modification")

        if "suffixe" in changes:
            changes["suffixe"] = normalize_suffixe(changes["suffixe"])
        if "voie_id" in changes:
            await self._check_voie(changes["voie_id"], numero.bal_id)
        if "toponyme_id" in changes:
            await self._check_toponyme(changes["toponyme_id"], numero.bal_id)

        now = now_iso()
        changes["updated_at"] = now
        result = await self.collection.update_one(
            {"id": numero.id, "deleted_at": None},
            {"$set": changes}
        )
        updated = await self.find_one_or_fail(numero.id)

        if result.matched_count > 0:
            await self._cascade(
                numero.bal_id,
                [numero.voie_id, updated.voie_id],
                [numero.toponyme_id, updated.toponyme_id],
                updated_at=now
            )
        return updated

    async def delete(self, numero: Numero):
        result = await self.collection.delete_one({"id": numero.id})
        if result.deleted_count > 0:
            await self._cascade(numero.bal_id, [numero.voie_id], [numero.toponyme_id])

    async def soft_delete(self, numero: Numero) -> Numero:
        result = await self.collection.update_one(
            {"id": numero.id, "deleted_at": None},
            {"$set": {"deleted_at": now_iso()}}
        )
        if result.matched_count > 0:
            await self._cascade(numero.bal_id, [numero.voie_id], [numero.toponyme_id])
        return await self.find_one_or_fail(numero.id)

    async def restore(self, numero: Numero) -> Numero:
        result = await self.collection.update_one(
            {"id": numero.id, "deleted_at": {"$ne": None}},
            {"$set": {"deleted_at": None}}
        )
        if result.matched_count > 0:
            await self._cascade(numero.bal_id, [numero.voie_id], [numero.toponyme_id])
        return await self.find_one_or_fail(numero.id)

    # ==================== BATCH ====================

    async def soft_delete_many(self, bal_id: str, numeros_ids: List[str]) -> int:
        """Archive un lot de numéros de la BAL"""
        numeros = await self._find_batch(bal_id, numeros_ids)
        result = await self.collection.update_many(
            {"id": {"$in": [n.id for n in numeros]}, "deleted_at": None},
            {"$set": {"deleted_at": now_iso()}}
        )
        if result.modified_count > 0:
            await self._cascade(bal_id, [n.voie_id for n in numeros], [n.toponyme_id for n in numeros])
        return result.modified_count

    async def delete_many(self, bal_id: str, numeros_ids: List[str]) -> int:
        """Supprime définitivement un lot de numéros de la BAL"""
        numeros = await self._find_batch(bal_id, numeros_ids)
        result = await self.collection.delete_many({"id": {"$in": [n.id for n in numeros]}})
        if result.deleted_count > 0:
            await self._cascade(bal_id, [n.voie_id for n in numeros], [n.toponyme_id for n in numeros])
        return result.deleted_count

    # Les méthodes suivantes ne déclenchent PAS de cascade:
    # c'est l'opération appelante (voie) qui met à jour la BAL.

    async def soft_delete_by_voie(self, voie_id: str, deleted_at: str) -> int:
        result = await self.collection.update_many(
            {"voie_id": voie_id, "deleted_at": None},
            {"$set": {"deleted_at": deleted_at}}
        )
        return result.modified_count

    async def restore_by_ids(self, numeros_ids: List[str]) -> int:
        result = await self.collection.update_many(
            {"id": {"$in": numeros_ids}},
            {"$set": {"deleted_at": None}}
        )
        return result.modified_count

    async def delete_by_voie(self, voie_id: str, session=None) -> int:
        result = await self.collection.delete_many({"voie_id": voie_id}, session=session)
        return result.deleted_count

    # ==================== CASCADE ====================

    async def _cascade(
        self,
        bal_id: str,
        voie_ids: Iterable[Optional[str]],
        toponyme_ids: Iterable[Optional[str]],
        updated_at: Optional[str] = None
    ):
        updated_at = updated_at or now_iso()

        voie_ids = sorted({v for v in voie_ids if v})
        for voie_id in voie_ids:
            await self._refresh_voie(voie_id, updated_at)

        toponyme_ids = sorted({t for t in toponyme_ids if t})
        if toponyme_ids:
            await self.db.toponymes.update_many(
                {"id": {"$in": toponyme_ids}},
                {"$set": {"updated_at": updated_at}}
            )

        await self.base_locale_service.touch(bal_id, updated_at)
        logger.info(f"[CASCADE] BAL {bal_id} touchée (voies={len(voie_ids)})")

    async def _refresh_voie(self, voie_id: str, updated_at: str):
        """Recalcule le centroïde de la voie et met à jour son updated_at"""
        doc = await self.db.voies.find_one({"id": voie_id}, {"_id": 0})
        if not doc:
            return
        voie = Voie.model_validate(doc)

        if voie.trace and voie.type_numerotation == TypeNumerotation.METRIQUE.value:
            centroid = geometry.centroid(voie.trace)
        else:
            centroid = await self.find_centroid_by_voie(voie_id)

        await self.db.voies.update_one(
            {"id": voie_id},
            {"$set": {"centroid": centroid, "updated_at": updated_at}}
        )

    # ==================== VALIDATION ====================

    async def _find_batch(self, bal_id: str, numeros_ids: List[str]) -> List[Numero]:
        if not numeros_ids:
            raise BadInput("La liste des numéros est vide")
        return await self.find_many({"id": {"$in": numeros_ids}, "bal_id": bal_id})

    async def _check_voie(self, voie_id: str, bal_id: str):
        exists = await self.db.voies.count_documents({"id": voie_id, "bal_id": bal_id, "deleted_at": None})
        if not exists:
            raise NotFound(f"Voie {voie_id} not found")

    async def _check_toponyme(self, toponyme_id: str, bal_id: str):
        exists = await self.db.toponymes.count_documents({"id": toponyme_id, "bal_id": bal_id, "deleted_at": None})
        if not exists:
            raise NotFound(f"Toponyme {toponyme_id} not found")

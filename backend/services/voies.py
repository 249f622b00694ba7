"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Mes Adresses - Service Voies                                                ║
║                                                                              ║
║  CASCADES (appelées explicitement par chaque opération):                     ║
║  - trace + numérotation métrique → centroïde de la trace                     ║
║  - toute mutation → updated_at de la BAL                                     ║
║  - archivage voie → archivage de tous ses numéros                            ║
║  - restauration voie + numéros → centroïde recalculé depuis les numéros      ║
║  - conversion en toponyme → transaction MongoDB (création + suppression)     ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import uuid
import logging
from typing import Optional, List, Dict, Any

from config import now_iso
from models.base_locale import BaseLocale
from models.numero import Numero
from models.toponyme import Toponyme, ToponymeCreate
from models.voie import (
    Voie,
    VoieCreate,
    VoieUpdate,
    ExtendedVoie,
    TypeNumerotation,
    clean_nom,
    clean_nom_alt,
)
from services import geometry
from services.errors import NotFound, BadInput

logger = logging.getLogger("voies")


def compute_bbox(voie: Voie, numeros: List[Numero]) -> Optional[List[float]]:
    """
    Emprise d'affichage d'une voie:
    1. positions des numéros actifs s'il y en a
    2. sinon la trace si la voie est en numérotation numérique
    3. sinon None
    """
    points = [p.point for n in numeros if not n.deleted_at for p in n.positions]
    if points:
        return geometry.bbox(geometry.feature_collection(points))
    if voie.trace and voie.type_numerotation == TypeNumerotation.NUMERIQUE.value:
        return geometry.bbox(voie.trace)
    return None


class VoieService:

    def __init__(self, db, base_locale_service, numero_service, toponyme_service):
        self.db = db
        self.collection = db.voies
        self.base_locale_service = base_locale_service
        self.numero_service = numero_service
        self.toponyme_service = toponyme_service

    # ==================== LECTURE ====================

    async def find_one_or_fail(self, voie_id: str) -> Voie:
        doc = await self.collection.find_one({"id": voie_id}, {"_id": 0})
        if not doc:
            raise NotFound(f"Voie {voie_id} not found")
        return Voie.model_validate(doc)

    async def find_many(self, query: Dict[str, Any]) -> List[Voie]:
        docs = await self.collection.find(query, {"_id": 0}).to_list(None)
        return [Voie.model_validate(doc) for doc in docs]

    async def is_voie_exist(self, voie_id: str, bal_id: Optional[str] = None) -> bool:
        query = {"id": voie_id, "deleted_at": None}
        if bal_id:
            query["bal_id"] = bal_id
        return await self.collection.count_documents(query) > 0

    async def extend_voie(self, voie: Voie) -> ExtendedVoie:
        numeros = await self.numero_service.find_many({"voie_id": voie.id, "deleted_at": None})
        nb_certifies = sum(1 for n in numeros if n.certifie)
        return ExtendedVoie(
            voie=voie,
            nb_numeros=len(numeros),
            nb_numeros_certifies=nb_certifies,
            is_all_certified=bool(numeros) and nb_certifies == len(numeros),
            bbox=compute_bbox(voie, numeros),
        )

    # ==================== ÉCRITURE ====================

    async def create(self, base_locale: BaseLocale, payload: VoieCreate) -> Voie:
        type_numerotation = payload.type_numerotation or TypeNumerotation.NUMERIQUE
        now = now_iso()
        doc = {
            "id": str(uuid.uuid4()),
            "bal_id": base_locale.id,
            "nom": clean_nom(payload.nom),
            "nom_alt": clean_nom_alt(payload.nom_alt),
            "code": None,
            "type_numerotation": TypeNumerotation(type_numerotation).value,
            "trace": payload.trace,
            "centroid": None,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        # Centroïde calculé AVANT l'insertion: une trace invalide bloque la création
        if doc["trace"] and doc["type_numerotation"] == TypeNumerotation.METRIQUE.value:
            doc["centroid"] = geometry.centroid(doc["trace"])

        await self.collection.insert_one(dict(doc))
        voie = Voie.model_validate(doc)
        await self.base_locale_service.touch(base_locale.id, voie.updated_at)
        return voie

    async def import_many(self, base_locale: BaseLocale, raw_voies: List[Dict[str, Any]], updated_at: Optional[str] = None) -> int:
        """Import brut (migration / import CSV). Les voies sans nom sont ignorées."""
        now = now_iso()
        docs = []
        for raw in raw_voies:
            if not raw.get("nom"):
                continue
            type_numerotation = raw.get("type_numerotation") or TypeNumerotation.NUMERIQUE.value
            trace = raw.get("trace")
            docs.append({
                "id": raw.get("id") or str(uuid.uuid4()),
                "bal_id": base_locale.id,
                "nom": clean_nom(raw["nom"]),
                "nom_alt": clean_nom_alt(raw.get("nom_alt")),
                "code": raw.get("code"),
                "type_numerotation": type_numerotation,
                "trace": trace,
                "centroid": geometry.centroid(trace) if trace and type_numerotation == TypeNumerotation.METRIQUE.value else None,
                "created_at": raw.get("created_at") or now,
                "updated_at": raw.get("updated_at") or now,
                "deleted_at": None,
            })

        if not docs:
            return 0

        await self.collection.insert_many(docs)
        await self.base_locale_service.touch(base_locale.id, updated_at)
        return len(docs)

    async def update(self, voie: Voie, payload: VoieUpdate) -> Voie:
        changes = payload.model_dump(exclude_none=True, mode="json")
        if not changes:
            raise BadInput("Aucune modification")

        if "nom" in changes:
            changes["nom"] = clean_nom(changes["nom"])
        if "nom_alt" in changes:
            changes["nom_alt"] = clean_nom_alt(changes["nom_alt"])

        if "trace" in changes or "type_numerotation" in changes:
            trace = changes.get("trace", voie.trace)
            type_numerotation = changes.get("type_numerotation", voie.type_numerotation)
            if trace and type_numerotation == TypeNumerotation.METRIQUE.value:
                changes["centroid"] = geometry.centroid(trace)
            else:
                changes["centroid"] = await self.numero_service.find_centroid_by_voie(voie.id)

        changes["updated_at"] = now_iso()
        where = {"id": voie.id, "deleted_at": None}
        result = await self.collection.update_one(where, {"$set": changes})
        updated = await self.find_one_or_fail(voie.id)

        if result.matched_count > 0:
            await self.base_locale_service.touch(updated.bal_id, updated.updated_at)
        return updated

    async def delete(self, voie: Voie):
        """Suppression définitive de la voie et de ses numéros"""
        result = await self.collection.delete_one({"id": voie.id})
        if result.deleted_count >= 1:
            await self.numero_service.delete_by_voie(voie.id)
            await self.base_locale_service.touch(voie.bal_id)

    async def soft_delete(self, voie: Voie) -> Voie:
        deleted_at = now_iso()
        result = await self.collection.update_one(
            {"id": voie.id, "deleted_at": None},
            {"$set": {"deleted_at": deleted_at}}
        )
        if result.matched_count == 0:
            return await self.find_one_or_fail(voie.id)

        # Archivage de tous les numéros de la voie
        nb = await self.numero_service.soft_delete_by_voie(voie.id, deleted_at)
        await self.base_locale_service.touch(voie.bal_id, deleted_at)
        logger.info(f"[CASCADE] Voie {voie.id} archivée avec {nb} numéro(s)")
        return await self.find_one_or_fail(voie.id)

    async def restore(self, voie: Voie, numeros_ids: Optional[List[str]] = None) -> Voie:
        numeros_ids = numeros_ids or []
        result = await self.collection.update_one(
            {"id": voie.id, "deleted_at": {"$ne": None}},
            {"$set": {"deleted_at": None}}
        )
        if result.matched_count == 0:
            return await self.find_one_or_fail(voie.id)

        if numeros_ids:
            await self.numero_service.restore_by_ids(numeros_ids)
            centroid = await self.numero_service.find_centroid_by_voie(voie.id)
            await self.collection.update_one({"id": voie.id}, {"$set": {"centroid": centroid}})

        await self.base_locale_service.touch(voie.bal_id)
        logger.info(f"[CASCADE] Voie {voie.id} restaurée ({len(numeros_ids)} numéro(s))")
        return await self.find_one_or_fail(voie.id)

    async def touch(self, voie_id: str, updated_at: Optional[str] = None):
        await self.collection.update_one(
            {"id": voie_id},
            {"$set": {"updated_at": updated_at or now_iso()}}
        )

    async def convert_to_toponyme(self, voie: Voie) -> Toponyme:
        """
        Transforme une voie sans numéro en toponyme.
        Création du toponyme et suppression de la voie dans UNE transaction.
        """
        if not await self.is_voie_exist(voie.id):
            raise BadInput(f"Voie {voie.id} is deleted")

        base_locale = await self.base_locale_service.find_one_or_fail(voie.bal_id)

        async with await self.db.client.start_session() as session:
            async with session.start_transaction():
                numeros_count = await self.numero_service.count(
                    {"voie_id": voie.id, "deleted_at": None},
                    session=session
                )
                if numeros_count > 0:
                    raise BadInput(f"Voie {voie.id} has numero(s)")

                toponyme = await self.toponyme_service.insert(
                    base_locale.id,
                    ToponymeCreate(nom=voie.nom, nom_alt=voie.nom_alt),
                    session=session
                )
                await self.collection.delete_one({"id": voie.id}, session=session)
                await self.numero_service.delete_by_voie(voie.id, session=session)

        await self.base_locale_service.touch(base_locale.id, toponyme.updated_at)
        logger.info(f"[CASCADE] Voie {voie.id} convertie en toponyme {toponyme.id}")
        return toponyme

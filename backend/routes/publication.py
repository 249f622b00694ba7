"""
Mes Adresses - Routes Publication

Synchronisation d'une BAL avec l'API de dépôt:
- Publication / republication (avec forçage en cas de conflit)
- Pause / reprise de la synchronisation automatique
"""

from fastapi import APIRouter, Depends, Query

from config import db
from email_service import email_service
from services.api_depot import ApiDepotClient
from services.publication import PublicationService

router = APIRouter(prefix="/bases-locales", tags=["Publication"])


def get_publication_service() -> PublicationService:
    return PublicationService(db, ApiDepotClient(), email_service)


@router.post("/{bal_id}/sync/exec")
async def exec_sync(
    bal_id: str,
    force: bool = Query(False, description="Republier même en cas de conflit"),
    service: PublicationService = Depends(get_publication_service)
):
    """Publie la BAL ou met à jour sa publication"""
    base_locale = await service.synchronize(bal_id, force=force)
    return base_locale.model_dump(by_alias=True)


@router.post("/{bal_id}/sync/pause")
async def pause_sync(bal_id: str, service: PublicationService = Depends(get_publication_service)):
    """Suspend la synchronisation automatique"""
    base_locale = await service.pause(bal_id)
    return base_locale.model_dump(by_alias=True)


@router.post("/{bal_id}/sync/resume")
async def resume_sync(bal_id: str, service: PublicationService = Depends(get_publication_service)):
    """Reprend la synchronisation automatique"""
    base_locale = await service.resume(bal_id)
    return base_locale.model_dump(by_alias=True)

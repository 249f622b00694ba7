"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Mes Adresses - Modèle Base Adresse Locale                                   ║
║                                                                              ║
║  LIFECYCLE:                                                                  ║
║  draft → published → replaced (conflit) → published (publication forcée)     ║
║  demo → draft (transform_to_draft)                                           ║
║                                                                              ║
║  INVARIANTS:                                                                 ║
║  - status="demo" n'est JAMAIS publiée                                        ║
║  - status="published" IMPLIQUE sync non null                                 ║
║  - sync.status="conflict" IMPLIQUE sync.is_paused=True et status="replaced"  ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from enum import Enum


class StatusBaseLocale(str, Enum):
    """Statuts d'une Base Adresse Locale"""
    DRAFT = "draft"
    PUBLISHED = "published"
    DEMO = "demo"
    REPLACED = "replaced"


class StatusSync(str, Enum):
    """Statuts de synchronisation avec l'API de dépôt"""
    SYNCED = "synced"        # La révision courante est la nôtre, pas de modif locale
    OUTDATED = "outdated"    # Modifications locales depuis la dernière publication
    CONFLICT = "conflict"    # Une autre révision a été publiée par-dessus


# Seuls statuts depuis lesquels on peut réconcilier ou (dé)mettre en pause
ACTIVE_SYNC_STATUSES = [StatusSync.SYNCED.value, StatusSync.OUTDATED.value]


class BaseLocaleSync(BaseModel):
    """
    État de publication d'une BAL.

    Stocké en snake_case dans MongoDB, sérialisé en camelCase
    ({status, isPaused, currentUpdated, lastUploadedRevisionId}) côté API.
    """
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=True,
    )

    status: StatusSync
    is_paused: bool = False
    current_updated: Optional[str] = None
    last_uploaded_revision_id: Optional[str] = None


class BaseLocale(BaseModel):
    """Snapshot immuable d'une Base Adresse Locale"""
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",  # Ignore le champ _id de MongoDB
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=True,
    )

    id: str
    nom: str = ""
    commune: str
    status: StatusBaseLocale = StatusBaseLocale.DRAFT
    habilitation_id: Optional[str] = None
    sync: Optional[BaseLocaleSync] = None
    emails: List[str] = Field(default_factory=list)

    created_at: str = ""
    updated_at: str = ""
    deleted_at: Optional[str] = None


class BaseLocaleCreate(BaseModel):
    """Création d'une BAL"""
    nom: str
    commune: str
    emails: List[str] = Field(default_factory=list)
    habilitation_id: Optional[str] = None
    demo: bool = False

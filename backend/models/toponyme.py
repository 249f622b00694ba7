"""
Modèles Toponyme (lieu-dit)
"""

from typing import Optional, List, Dict
from pydantic import BaseModel, ConfigDict, Field

from .numero import Position


class Toponyme(BaseModel):
    """Snapshot immuable d'un toponyme"""
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    bal_id: str
    nom: str
    nom_alt: Optional[Dict[str, str]] = None
    positions: List[Position] = Field(default_factory=list)
    parcelles: List[str] = Field(default_factory=list)

    created_at: str = ""
    updated_at: str = ""
    deleted_at: Optional[str] = None


class ToponymeCreate(BaseModel):
    nom: str
    nom_alt: Optional[Dict[str, str]] = None
    positions: List[Position] = Field(default_factory=list)
    parcelles: List[str] = Field(default_factory=list)


class ToponymeUpdate(BaseModel):
    nom: Optional[str] = None
    nom_alt: Optional[Dict[str, str]] = None
    positions: Optional[List[Position]] = None
    parcelles: Optional[List[str]] = None

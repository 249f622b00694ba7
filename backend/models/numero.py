"""
Modèles Numéro et Position
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class PositionType(str, Enum):
    """Types de position (format BAL)"""
    ENTREE = "entrée"
    BATIMENT = "bâtiment"
    CAGE_ESCALIER = "cage d’escalier"
    LOGEMENT = "logement"
    SERVICE_TECHNIQUE = "service technique"
    DELIVRANCE_POSTALE = "délivrance postale"
    PARCELLE = "parcelle"
    SEGMENT = "segment"
    INCONNUE = "inconnue"


class Position(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", use_enum_values=True)

    type: PositionType = PositionType.ENTREE
    source: Optional[str] = None
    point: Dict[str, Any]  # GeoJSON Point


class Numero(BaseModel):
    """Snapshot immuable d'un numéro"""
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    bal_id: str
    voie_id: str
    toponyme_id: Optional[str] = None
    numero: int
    suffixe: Optional[str] = None
    positions: List[Position] = Field(default_factory=list)
    parcelles: List[str] = Field(default_factory=list)
    certifie: bool = False
    comment: Optional[str] = None

    created_at: str = ""
    updated_at: str = ""
    deleted_at: Optional[str] = None


class NumeroCreate(BaseModel):
    numero: int
    suffixe: Optional[str] = None
    toponyme_id: Optional[str] = None
    positions: List[Position] = Field(default_factory=list)
    parcelles: List[str] = Field(default_factory=list)
    certifie: bool = False
    comment: Optional[str] = None


class NumeroUpdate(BaseModel):
    """Mise à jour partielle d'un numéro (champs None ignorés)"""
    numero: Optional[int] = None
    suffixe: Optional[str] = None
    voie_id: Optional[str] = None
    toponyme_id: Optional[str] = None
    positions: Optional[List[Position]] = None
    parcelles: Optional[List[str]] = None
    certifie: Optional[bool] = None
    comment: Optional[str] = None


def normalize_suffixe(suffixe: Optional[str]) -> Optional[str]:
    if not suffixe:
        return None
    return suffixe.lower().strip()

"""
Modèles Voie (rue, chemin, lieu-dit numéroté)
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict
from enum import Enum


class TypeNumerotation(str, Enum):
    NUMERIQUE = "numerique"
    METRIQUE = "metrique"  # Numéro = distance en mètres depuis le début de la voie


class Voie(BaseModel):
    """Snapshot immuable d'une voie"""
    model_config = ConfigDict(frozen=True, extra="ignore", use_enum_values=True)

    id: str
    bal_id: str
    nom: str
    nom_alt: Optional[Dict[str, str]] = None
    code: Optional[str] = None
    type_numerotation: TypeNumerotation = TypeNumerotation.NUMERIQUE
    trace: Optional[Dict[str, Any]] = None      # GeoJSON LineString
    centroid: Optional[Dict[str, Any]] = None   # GeoJSON Point (calculé)

    created_at: str = ""
    updated_at: str = ""
    deleted_at: Optional[str] = None


class VoieCreate(BaseModel):
    nom: str
    nom_alt: Optional[Dict[str, str]] = None
    type_numerotation: Optional[TypeNumerotation] = None
    trace: Optional[Dict[str, Any]] = None


class VoieUpdate(BaseModel):
    """Mise à jour partielle d'une voie (champs None ignorés)"""
    nom: Optional[str] = None
    nom_alt: Optional[Dict[str, str]] = None
    type_numerotation: Optional[TypeNumerotation] = None
    trace: Optional[Dict[str, Any]] = None


class ExtendedVoie(BaseModel):
    """Voie enrichie pour l'affichage (compteurs + emprise)"""
    voie: Voie
    nb_numeros: int = 0
    nb_numeros_certifies: int = 0
    is_all_certified: bool = False
    bbox: Optional[List[float]] = None


def clean_nom(nom: str) -> str:
    """Supprime les espaces superflus d'un nom de voie / toponyme"""
    return " ".join(nom.split())


def clean_nom_alt(nom_alt: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
    if not nom_alt:
        return None
    cleaned = {lang: clean_nom(value) for lang, value in nom_alt.items() if value and value.strip()}
    return cleaned or None

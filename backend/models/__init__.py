"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Mes Adresses - Models Package                                               ║
║                                                                              ║
║  Exports tous les modèles pour import facile                                 ║
║  from models import BaseLocale, StatusSync, Voie, Numero, etc.               ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

# Base Adresse Locale
from .base_locale import (
    StatusBaseLocale,
    StatusSync,
    ACTIVE_SYNC_STATUSES,
    BaseLocaleSync,
    BaseLocale,
    BaseLocaleCreate,
)

# Voie
from .voie import (
    TypeNumerotation,
    Voie,
    VoieCreate,
    VoieUpdate,
    ExtendedVoie,
)

# Numéro
from .numero import (
    PositionType,
    Position,
    Numero,
    NumeroCreate,
    NumeroUpdate,
)

# Toponyme
from .toponyme import (
    Toponyme,
    ToponymeCreate,
    ToponymeUpdate,
)

# API de dépôt
from .api_depot import (
    StatusHabilitation,
    Habilitation,
    RevisionFile,
    Revision,
)

__all__ = [
    # Base Adresse Locale
    "StatusBaseLocale",
    "StatusSync",
    "ACTIVE_SYNC_STATUSES",
    "BaseLocaleSync",
    "BaseLocale",
    "BaseLocaleCreate",
    # Voie
    "TypeNumerotation",
    "Voie",
    "VoieCreate",
    "VoieUpdate",
    "ExtendedVoie",
    # Numéro
    "PositionType",
    "Position",
    "Numero",
    "NumeroCreate",
    "NumeroUpdate",
    # Toponyme
    "Toponyme",
    "ToponymeCreate",
    "ToponymeUpdate",
    # API de dépôt
    "StatusHabilitation",
    "Habilitation",
    "RevisionFile",
    "Revision",
]

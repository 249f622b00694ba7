"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Mes Adresses - Export CSV au format BAL                                     ║
║                                                                              ║
║  - Séparateur ";" (format BAL)                                               ║
║  - Une ligne par position (une ligne sans coordonnées si aucune position)    ║
║  - Une ligne 99999 par toponyme (lieu-dit sans numéro)                       ║
║  - Tri déterministe: le hash du fichier ne change que si le contenu change   ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import csv
import io
import hashlib
import logging
from typing import List, Dict, Optional

from models.base_locale import BaseLocale
from models.numero import Numero, Position
from models.toponyme import Toponyme
from models.voie import Voie

logger = logging.getLogger("export_csv")

CSV_COLUMNS = [
    "cle_interop",
    "commune_insee",
    "voie_nom",
    "lieudit_complement_nom",
    "numero",
    "suffixe",
    "position",
    "long",
    "lat",
    "cad_parcelles",
    "source",
    "date_der_maj",
    "certification_commune",
]

NUMERO_TOPONYME = 99999


def build_cle_interop(commune: str, code_voie: Optional[str], numero: int, suffixe: Optional[str] = None) -> str:
    cle = f"{commune}_{(code_voie or 'xxxx')}_{str(numero).zfill(5)}"
    if suffixe:
        cle += f"_{suffixe}"
    return cle.lower()


def hash_file(content: str) -> str:
    """sha256 hexadécimal du fichier (même algorithme que l'API de dépôt)"""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _format_coord(value: float) -> str:
    return f"{value:.6f}"


def _position_columns(position: Optional[Position]) -> Dict[str, str]:
    if not position:
        return {"position": "", "long": "", "lat": "", "source": ""}
    lon, lat = position.point["coordinates"][:2]
    return {
        "position": position.type,
        "long": _format_coord(lon),
        "lat": _format_coord(lat),
        "source": position.source or "",
    }


def generate_csv_content(
    base_locale: BaseLocale,
    voies: List[Voie],
    numeros: List[Numero],
    toponymes: List[Toponyme]
) -> str:
    """Génère le fichier BAL à partir d'objets déjà filtrés (non archivés)"""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=CSV_COLUMNS, delimiter=";", lineterminator="\n")
    writer.writeheader()

    voies_by_id = {v.id: v for v in voies}
    toponymes_by_id = {t.id: t for t in toponymes}

    def sort_key(numero: Numero):
        voie = voies_by_id.get(numero.voie_id)
        return (voie.nom if voie else "", numero.numero, numero.suffixe or "", numero.id)

    for numero in sorted(numeros, key=sort_key):
        voie = voies_by_id.get(numero.voie_id)
        if not voie:
            continue
        toponyme = toponymes_by_id.get(numero.toponyme_id) if numero.toponyme_id else None
        base_row = {
            "cle_interop": build_cle_interop(base_locale.commune, voie.code, numero.numero, numero.suffixe),
            "commune_insee": base_locale.commune,
            "voie_nom": voie.nom,
            "lieudit_complement_nom": toponyme.nom if toponyme else "",
            "numero": str(numero.numero),
            "suffixe": numero.suffixe or "",
            "cad_parcelles": "|".join(numero.parcelles),
            "date_der_maj": numero.updated_at[:10],
            "certification_commune": "1" if numero.certifie else "0",
        }
        for position in (numero.positions or [None]):
            writer.writerow({**base_row, **_position_columns(position)})

    for toponyme in sorted(toponymes, key=lambda t: (t.nom, t.id)):
        base_row = {
            "cle_interop": build_cle_interop(base_locale.commune, None, NUMERO_TOPONYME),
            "commune_insee": base_locale.commune,
            "voie_nom": toponyme.nom,
            "lieudit_complement_nom": "",
            "numero": str(NUMERO_TOPONYME),
            "suffixe": "",
            "cad_parcelles": "|".join(toponyme.parcelles),
            "date_der_maj": toponyme.updated_at[:10],
            "certification_commune": "0",
        }
        for position in (toponyme.positions or [None]):
            writer.writerow({**base_row, **_position_columns(position)})

    return output.getvalue()


class ExportCsvService:

    def __init__(self, db):
        self.db = db

    async def export_to_csv(self, base_locale: BaseLocale) -> str:
        query = {"bal_id": base_locale.id, "deleted_at": None}
        voies = await self.db.voies.find(query, {"_id": 0}).to_list(None)
        numeros = await self.db.numeros.find(query, {"_id": 0}).to_list(None)
        toponymes = await self.db.toponymes.find(query, {"_id": 0}).to_list(None)

        content = generate_csv_content(
            base_locale,
            [Voie.model_validate(v) for v in voies],
            [Numero.model_validate(n) for n in numeros],
            [Toponyme.model_validate(t) for t in toponymes],
        )
        logger.info(f"[EXPORT] BAL {base_locale.id}: {len(numeros)} numéros, {len(toponymes)} toponymes")
        return content

"""
Configuration et utilitaires partagés
"""

import os
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Charger .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'mes_adresses')

client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]

# API de dépôt (publication des BAL)
API_DEPOT_URL = os.environ.get('API_DEPOT_URL', 'https://plateforme-bal.adresse.data.gouv.fr/api-depot')
API_DEPOT_CLIENT_SECRET = os.environ.get('API_DEPOT_CLIENT_SECRET', '')
API_DEPOT_TIMEOUT = float(os.environ.get('API_DEPOT_TIMEOUT', '30'))

# Éditeur (liens dans les emails)
EDITEUR_URL = os.environ.get('EDITEUR_URL', 'https://mes-adresses.data.gouv.fr')

# Scheduler
SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'true').lower() == 'true'
# Délai sans modification avant republication automatique d'une BAL outdated
SYNC_OUTDATED_DELAY_MINUTES = int(os.environ.get('SYNC_OUTDATED_DELAY_MINUTES', '120'))


# ==================== HELPERS ====================

def now_iso() -> str:
    """Retourne la date/heure actuelle en ISO"""
    return datetime.now(timezone.utc).isoformat()


def now() -> datetime:
    """Retourne la date/heure actuelle (UTC, aware)"""
    return datetime.now(timezone.utc)

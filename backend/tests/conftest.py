import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from helpers import FakeDatabase, FakeApiDepot, FakeMailer, make_habilitation  # noqa: E402
from services.bases_locales import BaseLocaleService  # noqa: E402
from services.numeros import NumeroService  # noqa: E402
from services.publication import PublicationService  # noqa: E402
from services.toponymes import ToponymeService  # noqa: E402
from services.voies import VoieService  # noqa: E402


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def api_depot():
    depot = FakeApiDepot()
    depot.add_habilitation(make_habilitation("hab-1"))
    return depot


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def services(db, api_depot, mailer):
    """Services câblés sur la base en mémoire"""
    base_locale_service = BaseLocaleService(db)
    numero_service = NumeroService(db, base_locale_service)
    toponyme_service = ToponymeService(db, base_locale_service)
    voie_service = VoieService(db, base_locale_service, numero_service, toponyme_service)
    return SimpleNamespace(
        bases_locales=base_locale_service,
        numeros=numero_service,
        toponymes=toponyme_service,
        voies=voie_service,
        publication=PublicationService(db, api_depot, mailer),
    )

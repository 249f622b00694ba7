"""
Outils de test partagés:
- run(): exécute une coroutine dans une boucle neuve
- FakeDatabase: base MongoDB en mémoire compatible motor (sous-ensemble utilisé)
- FakeApiDepot / FakeMailer: collaborateurs externes
- make_*: fabriques de documents
"""

import asyncio
import copy
import uuid
from datetime import datetime, timezone, timedelta
from types import SimpleNamespace

from models.api_depot import Habilitation, Revision
from services.errors import NotFound
from services.export_csv import hash_file


def run(coro):
    """Run async operation in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ═══════════════════════════════════════════════════════════════
# FAKE MONGODB
#
# Seul le sous-ensemble de motor appelé par les services est simulé:
# - filtres: égalité (None = champ absent ou nul), $in, $ne, $lt
# - mises à jour: $set
# - collection: insert_one, insert_many, find(...).to_list, find_one,
#   count_documents, update_one, update_many, delete_one, delete_many
# - client.start_session() / session.start_transaction() avec rollback
# Tout autre opérateur lève NotImplementedError.
# ═══════════════════════════════════════════════════════════════

FILTER_OPERATORS = ("$in", "$ne", "$lt")
UPDATE_OPERATORS = ("$set",)

_MISSING = object()


def _get(doc, path):
    value = doc
    for part in path.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return _MISSING
    return value


def _eq(value, expected):
    if expected is None:
        return value is _MISSING or value is None
    return value is not _MISSING and value == expected


def _match_value(value, condition):
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        for op, arg in condition.items():
            if op not in FILTER_OPERATORS:
                raise NotImplementedError(op)
            if op == "$in":
                if not any(_eq(value, a) for a in arg):
                    return False
            elif op == "$ne":
                if _eq(value, arg):
                    return False
            elif op == "$lt":
                if value is _MISSING or value is None or not value < arg:
                    return False
        return True
    return _eq(value, condition)


def matches(doc, query):
    return all(_match_value(_get(doc, key), cond) for key, cond in (query or {}).items())


def _set(doc, path, value):
    parts = path.split(".")
    target = doc
    for part in parts[:-1]:
        if not isinstance(target.get(part), dict):
            target[part] = {}
        target = target[part]
    target[parts[-1]] = copy.deepcopy(value)


def apply_update(doc, update):
    for op, fields in update.items():
        if op not in UPDATE_OPERATORS:
            raise NotImplementedError(op)
        for path, value in fields.items():
            _set(doc, path, value)


def _project(doc, projection):
    doc = copy.deepcopy(doc)
    if projection and projection.get("_id") == 0:
        doc.pop("_id", None)
    return doc


class FakeCursor:

    def __init__(self, docs):
        self.docs = docs

    async def to_list(self, length=None):
        return self.docs if length is None else self.docs[:length]


class FakeCollection:

    def __init__(self, name):
        self.name = name
        self.docs = []
        self.calls = []

    async def insert_one(self, doc, session=None):
        self.calls.append("insert_one")
        doc.setdefault("_id", uuid.uuid4().hex)
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    async def insert_many(self, docs, session=None):
        self.calls.append("insert_many")
        for doc in docs:
            doc.setdefault("_id", uuid.uuid4().hex)
            self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_ids=[d["_id"] for d in docs])

    async def find_one(self, query=None, projection=None, session=None):
        for doc in self.docs:
            if matches(doc, query):
                return _project(doc, projection)
        return None

    def find(self, query=None, projection=None, session=None):
        return FakeCursor([_project(d, projection) for d in self.docs if matches(d, query)])

    async def count_documents(self, query, session=None):
        return sum(1 for d in self.docs if matches(d, query))

    async def _update(self, query, update, many):
        matched = modified = 0
        for doc in self.docs:
            if not matches(doc, query):
                continue
            matched += 1
            before = copy.deepcopy(doc)
            apply_update(doc, update)
            if doc != before:
                modified += 1
            if not many:
                break
        return SimpleNamespace(matched_count=matched, modified_count=modified)

    async def update_one(self, query, update, session=None):
        self.calls.append("update_one")
        return await self._update(query, update, many=False)

    async def update_many(self, query, update, session=None):
        self.calls.append("update_many")
        return await self._update(query, update, many=True)

    async def delete_one(self, query, session=None):
        self.calls.append("delete_one")
        for i, doc in enumerate(self.docs):
            if matches(doc, query):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def delete_many(self, query, session=None):
        self.calls.append("delete_many")
        kept = [d for d in self.docs if not matches(d, query)]
        deleted = len(self.docs) - len(kept)
        self.docs = kept
        return SimpleNamespace(deleted_count=deleted)


class FakeTransaction:

    def __init__(self, database):
        self.database = database

    async def __aenter__(self):
        self.snapshot = {name: copy.deepcopy(c.docs) for name, c in self.database.collections.items()}
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None:
            for name, docs in self.snapshot.items():
                self.database.collections[name].docs = docs
            self.database.client.aborted += 1
        else:
            self.database.client.committed += 1
        return False


class FakeSession:

    def __init__(self, database):
        self.database = database

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def start_transaction(self):
        return FakeTransaction(self.database)


class FakeClient:

    def __init__(self, database):
        self.database = database
        self.committed = 0
        self.aborted = 0

    async def start_session(self):
        return FakeSession(self.database)


class FakeDatabase:
    """Sous-ensemble de AsyncIOMotorDatabase: db.<collection>, db[<collection>], db.client"""

    def __init__(self):
        self.collections = {}
        self.client = FakeClient(self)

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


# ═══════════════════════════════════════════════════════════════
# FAKE COLLABORATEURS EXTERNES
# ═══════════════════════════════════════════════════════════════

def make_habilitation(habilitation_id="hab-1", status="accepted", expires_in_days=30, code_commune="27115"):
    expires_at = None
    if expires_in_days is not None:
        expires_at = (datetime.now(timezone.utc) + timedelta(days=expires_in_days)).isoformat()
    return Habilitation.model_validate({
        "_id": habilitation_id,
        "status": status,
        "codeCommune": code_commune,
        "expiresAt": expires_at,
    })


def make_revision(revision_id, code_commune="27115", bal_hash=None, published_at=None):
    files = [{"type": "bal", "hash": bal_hash}] if bal_hash is not None else []
    return Revision.model_validate({
        "_id": revision_id,
        "codeCommune": code_commune,
        "files": files,
        "publishedAt": published_at,
    })


class FakeApiDepot:

    def __init__(self):
        self.habilitations = {}
        self.current_revisions = {}
        self.published = []
        self.calls = []

    def add_habilitation(self, habilitation):
        self.habilitations[habilitation.id] = habilitation

    async def find_habilitation(self, habilitation_id):
        self.calls.append(("find_habilitation", habilitation_id))
        if habilitation_id not in self.habilitations:
            raise NotFound(f"Habilitation {habilitation_id} not found")
        return self.habilitations[habilitation_id]

    async def get_current_revision(self, code_commune):
        self.calls.append(("get_current_revision", code_commune))
        return self.current_revisions.get(code_commune)

    async def get_current_revisions(self, published_since=None):
        self.calls.append(("get_current_revisions", published_since))
        return list(self.current_revisions.values())

    async def publish_new_revision(self, code_commune, bal_id, file, habilitation_id):
        self.calls.append(("publish_new_revision", code_commune))
        revision = make_revision(f"rev-{len(self.published) + 1}", code_commune, bal_hash=hash_file(file))
        self.published.append({
            "code_commune": code_commune,
            "bal_id": bal_id,
            "file": file,
            "habilitation_id": habilitation_id,
            "revision": revision,
        })
        self.current_revisions[code_commune] = revision
        return revision


class FakeMailer:

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_mail(self, email, to_emails):
        if self.fail:
            raise RuntimeError("SMTP down")
        self.sent.append({"email": email, "to": to_emails})
        return True


# ═══════════════════════════════════════════════════════════════
# FABRIQUES DE DOCUMENTS
# ═══════════════════════════════════════════════════════════════

T0 = "2026-01-10T08:00:00+00:00"
T1 = "2026-01-12T09:30:00+00:00"


def make_bal_doc(**overrides):
    doc = {
        "id": str(uuid.uuid4()),
        "nom": "BAL de Pont-Authou",
        "commune": "27115",
        "status": "draft",
        "habilitation_id": "hab-1",
        "sync": None,
        "emails": ["mairie@pont-authou.fr"],
        "created_at": T0,
        "updated_at": T0,
        "deleted_at": None,
    }
    doc.update(overrides)
    return doc


def make_sync(status="synced", is_paused=False, current_updated=T0, last_uploaded_revision_id="rev-1"):
    return {
        "status": status,
        "is_paused": is_paused,
        "current_updated": current_updated,
        "last_uploaded_revision_id": last_uploaded_revision_id,
    }


def make_voie_doc(bal_id, **overrides):
    doc = {
        "id": str(uuid.uuid4()),
        "bal_id": bal_id,
        "nom": "Rue de la Mairie",
        "nom_alt": None,
        "code": None,
        "type_numerotation": "numerique",
        "trace": None,
        "centroid": None,
        "created_at": T0,
        "updated_at": T0,
        "deleted_at": None,
    }
    doc.update(overrides)
    return doc


def make_position(lon, lat, type_="entrée"):
    return {"type": type_, "source": "commune", "point": {"type": "Point", "coordinates": [lon, lat]}}


def make_numero_doc(bal_id, voie_id, numero=1, positions=None, **overrides):
    doc = {
        "id": str(uuid.uuid4()),
        "bal_id": bal_id,
        "voie_id": voie_id,
        "toponyme_id": None,
        "numero": numero,
        "suffixe": None,
        "positions": positions if positions is not None else [make_position(1.0, 49.0)],
        "parcelles": [],
        "certifie": False,
        "comment": None,
        "created_at": T0,
        "updated_at": T0,
        "deleted_at": None,
    }
    doc.update(overrides)
    return doc


def make_toponyme_doc(bal_id, **overrides):
    doc = {
        "id": str(uuid.uuid4()),
        "bal_id": bal_id,
        "nom": "Le Bourg",
        "nom_alt": None,
        "positions": [],
        "parcelles": [],
        "created_at": T0,
        "updated_at": T0,
        "deleted_at": None,
    }
    doc.update(overrides)
    return doc


def insert(db, collection, doc):
    run(db[collection].insert_one(dict(doc)))
    return doc

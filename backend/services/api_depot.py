"""
Client de l'API de dépôt (habilitations et révisions)

Publication d'une révision en 4 appels:
  1. POST /communes/{code}/revisions        → création de la révision
  2. PUT  /revisions/{id}/files/bal         → upload du fichier BAL
  3. POST /revisions/{id}/compute           → validation côté dépôt
  4. POST /revisions/{id}/publish           → publication avec l'habilitation

Aucune relance ici: toute erreur remonte en RemoteServiceError.
"""

import httpx
import logging
from typing import Optional, List, Any

from pydantic import ValidationError

from config import API_DEPOT_URL, API_DEPOT_CLIENT_SECRET, API_DEPOT_TIMEOUT
from models.api_depot import Habilitation, Revision
from services.errors import NotFound, RemoteServiceError

logger = logging.getLogger("api_depot")


class ApiDepotClient:

    def __init__(
        self,
        base_url: str = API_DEPOT_URL,
        client_secret: str = API_DEPOT_CLIENT_SECRET,
        timeout: float = API_DEPOT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = {"Authorization": f"Token {client_secret}"}
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, path: str, allow_404: bool = False, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        headers = {**self.headers, **kwargs.pop("headers", {})}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"API dépôt injoignable: {method} {path}: {str(e)}")
            raise RemoteServiceError(f"API de dépôt injoignable: {str(e)}") from e

        if resp.status_code == 404 and allow_404:
            return None
        if resp.status_code >= 400:
            logger.error(f"API dépôt erreur {resp.status_code}: {method} {path}")
            raise RemoteServiceError(f"API de dépôt: {method} {path} a répondu {resp.status_code}")

        try:
            return resp.json()
        except ValueError as e:
            raise RemoteServiceError(f"API de dépôt: réponse invalide pour {method} {path}") from e

    @staticmethod
    def _parse(model, data):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RemoteServiceError(f"API de dépôt: réponse inattendue ({model.__name__})") from e

    # ==================== HABILITATIONS ====================

    async def find_habilitation(self, habilitation_id: str) -> Habilitation:
        data = await self._request("GET", f"/habilitations/{habilitation_id}", allow_404=True)
        if data is None:
            raise NotFound(f"Habilitation {habilitation_id} not found")
        return self._parse(Habilitation, data)

    # ==================== RÉVISIONS ====================

    async def get_current_revision(self, code_commune: str) -> Optional[Revision]:
        data = await self._request("GET", f"/communes/{code_commune}/current-revision", allow_404=True)
        if data is None:
            return None
        return self._parse(Revision, data)

    async def get_current_revisions(self, published_since: Optional[str] = None) -> List[Revision]:
        params = {"publishedSince": published_since} if published_since else None
        data = await self._request("GET", "/current-revisions", params=params)
        if not isinstance(data, list):
            raise RemoteServiceError("API de dépôt: liste de révisions attendue")
        return [self._parse(Revision, item) for item in data]

    async def publish_new_revision(
        self,
        code_commune: str,
        bal_id: str,
        file: str,
        habilitation_id: str
    ) -> Revision:
        created = await self._request(
            "POST",
            f"/communes/{code_commune}/revisions",
            json={"context": {"extras": {"balId": bal_id}}}
        )
        revision = self._parse(Revision, created)

        await self._request(
            "PUT",
            f"/revisions/{revision.id}/files/bal",
            content=file.encode("utf-8"),
            headers={"Content-Type": "text/csv"}
        )
        await self._request("POST", f"/revisions/{revision.id}/compute")
        published = await self._request(
            "POST",
            f"/revisions/{revision.id}/publish",
            json={"habilitationId": habilitation_id}
        )

        logger.info(f"[API_DEPOT] Révision {revision.id} publiée pour {code_commune} (BAL {bal_id})")
        return self._parse(Revision, published)

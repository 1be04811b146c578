"""
Client HTTP asynchrone vers l'API backend (/api/v1).
Centralise le mapping statut HTTP -> erreurs du parcours:
- 400/401/403/404/409/422 -> ClientError (pas de retry)
- 429, 5xx, erreurs réseau -> TransientError (retry borné côté appelant)
"""
import logging
from typing import Any, Dict, Optional

import httpx

from membership.config import API_BASE_URL, HTTP_TIMEOUT
from membership.errors import ClientError, TransientError

logger = logging.getLogger(__name__)

CLIENT_ERROR_STATUSES = {400, 401, 403, 404, 409, 422}


def _error_message(resp: httpx.Response) -> str:
    # Express renvoie {message}, FastAPI renvoie {detail}
    try:
        body = resp.json()
        if isinstance(body, dict):
            msg = body.get("message") or body.get("detail") or body.get("error")
            if msg:
                return str(msg)
    except ValueError:
        pass
    return resp.text or f"HTTP {resp.status_code}"


class ApiClient:
    def __init__(
        self,
        base_url: str = API_BASE_URL,
        *,
        timeout: Optional[float] = HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            resp = await self._client.request(method, path, json=json, headers=headers)
        except httpx.TransportError as e:
            logger.warning("membership.http transport error %s %s: %s", method, path, e)
            raise TransientError(f"Network error: {e}") from e

        if resp.status_code in CLIENT_ERROR_STATUSES:
            raise ClientError(_error_message(resp), resp.status_code)
        if resp.status_code >= 400:
            logger.warning("membership.http %s %s -> %s", method, path, resp.status_code)
            raise TransientError(_error_message(resp), resp.status_code)
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {"data": body}

    async def post(self, path: str, *, json: Optional[Dict[str, Any]] = None, token: Optional[str] = None) -> Dict[str, Any]:
        return await self.request("POST", path, json=json, token=token)

    async def get(self, path: str, *, token: Optional[str] = None) -> Dict[str, Any]:
        return await self.request("GET", path, token=token)

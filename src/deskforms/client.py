from __future__ import annotations

import logging
from typing import Any

import httpx

from deskforms.errors import NotFoundError, TransportError
from deskforms.submission import SubmissionPayload

logger = logging.getLogger(__name__)

HTTP_STATUS_OK = 200
HTTP_STATUS_CREATED = 201
HTTP_STATUS_NOT_FOUND = 404

GENERIC_FAILURE = "Erro ao comunicar com o servidor"


class HelpdeskClient:
    """Async client for the forms, pages, lookup and public submission endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must be set")
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Accept": "application/json", **(headers or {})},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> HelpdeskClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_forms(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/forms")

    async def get_form(self, form_id: int) -> dict[str, Any]:
        return await self._request("GET", f"/api/forms/{form_id}")

    async def create_form(self, data: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/api/forms", json_body=data, expected={HTTP_STATUS_CREATED})

    async def update_form(self, form_id: int, data: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PUT", f"/api/forms/{form_id}", json_body=data)

    async def delete_form(self, form_id: int) -> None:
        await self._request("DELETE", f"/api/forms/{form_id}")

    async def rotate_public_url(self, form_id: int) -> dict[str, Any]:
        return await self._request("POST", f"/api/forms/{form_id}/public-url")

    async def list_pages(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/pages")

    async def get_page(self, page_id: int) -> dict[str, Any]:
        return await self._request("GET", f"/api/pages/{page_id}")

    async def create_page(self, data: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/api/pages", json_body=data, expected={HTTP_STATUS_CREATED})

    async def update_page(self, page_id: int, data: dict[str, Any]) -> dict[str, Any]:
        return await self._request("PUT", f"/api/pages/{page_id}", json_body=data)

    async def delete_page(self, page_id: int) -> None:
        await self._request("DELETE", f"/api/pages/{page_id}")

    async def list_users(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/users")

    async def list_groups(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/groups")

    async def get_public_form(self, public_url: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/public/forms/{public_url}")

    async def get_public_page(self, slug: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/public/pages/{slug}")

    async def submit_form(self, payload: SubmissionPayload) -> dict[str, Any]:
        data, files = payload.multipart()
        return await self._request(
            "POST",
            f"/api/public/forms/{payload.public_url}/submit",
            data=data,
            files=files or None,
            expected={HTTP_STATUS_CREATED},
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        data: dict[str, str] | None = None,
        files: dict[str, tuple[str, bytes, str]] | None = None,
        expected: set[int] | None = None,
    ) -> Any:
        statuses = expected or {HTTP_STATUS_OK}
        try:
            response = await self._client.request(method, path, json=json_body, data=data, files=files)
        except httpx.HTTPError as exc:
            logger.warning("Request failed: %s %s (%s)", method, path, exc)
            raise TransportError(GENERIC_FAILURE) from exc

        if response.status_code == HTTP_STATUS_NOT_FOUND:
            detail = _error_message(response)
            raise NotFoundError(detail or "Recurso não encontrado", detail=detail)
        if response.status_code not in statuses:
            detail = _error_message(response)
            logger.warning("Unexpected status %s for %s %s", response.status_code, method, path)
            raise TransportError(detail or GENERIC_FAILURE, status_code=response.status_code, detail=detail)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(GENERIC_FAILURE, status_code=response.status_code) from exc


def _error_message(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    detail = payload.get("detail", payload.get("error"))
    if isinstance(detail, dict):
        detail = detail.get("message")
    if isinstance(detail, str) and detail:
        return detail
    return None

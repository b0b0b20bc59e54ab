from __future__ import annotations

import logging
from typing import Any

import httpx

from advisor_crm.context import CORRELATION_HEADER, get_correlation_id
from advisor_crm.core.config import get_settings


logger = logging.getLogger("app.client")

DEFAULT_ERROR_MESSAGE = "Falha na requisição à API."


class ApiError(Exception):
    def __init__(self, message: str = DEFAULT_ERROR_MESSAGE, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return DEFAULT_ERROR_MESSAGE
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return DEFAULT_ERROR_MESSAGE


class CRMApiClient:
    """JSON client for the CRM REST API.

    Paths are relative to the ``http_client`` base URL, which points at the API
    root (``.../api``). The client's cookie jar carries the session cookie
    between calls.
    """

    def __init__(self, http_client: httpx.Client) -> None:
        self.http_client = http_client

    @classmethod
    def from_settings(cls) -> CRMApiClient:
        return cls(httpx.Client(base_url=get_settings().api_base_url, follow_redirects=True))

    def request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        correlation_id = get_correlation_id()
        headers = {CORRELATION_HEADER: correlation_id} if correlation_id else None
        try:
            response = self.http_client.request(method, path, json=payload, headers=headers)
        except httpx.TransportError as exc:
            logger.warning("client.request_failed", extra={"method": method, "path": path, "error": str(exc)})
            raise ApiError() from exc

        if response.status_code >= 400:
            raise ApiError(_error_message(response), response.status_code)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def list_clients(self) -> list[dict[str, Any]]:
        return self.request("GET", "/clients")

    def create_client(self, fields: dict[str, Any]) -> dict[str, Any]:
        return self.request("POST", "/clients", fields)

    def update_client(self, client_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        return self.request("PUT", f"/clients/{client_id}", fields)

    def delete_client(self, client_id: str) -> None:
        self.request("DELETE", f"/clients/{client_id}")

    def list_partners(self) -> list[dict[str, Any]]:
        return self.request("GET", "/partners")

    def create_partner(self, fields: dict[str, Any]) -> dict[str, Any]:
        return self.request("POST", "/partners", fields)

    def list_opportunities(self) -> list[dict[str, Any]]:
        return self.request("GET", "/opportunities")

    def create_opportunity(self, fields: dict[str, Any]) -> dict[str, Any]:
        return self.request("POST", "/opportunities", fields)

    def update_opportunity(self, opportunity_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        return self.request("PUT", f"/opportunities/{opportunity_id}", fields)

    def list_transactions(self) -> list[dict[str, Any]]:
        return self.request("GET", "/transactions")

    def create_transaction(self, fields: dict[str, Any]) -> dict[str, Any]:
        return self.request("POST", "/transactions", fields)

    def list_activities(self) -> list[dict[str, Any]]:
        return self.request("GET", "/activities")

    def create_activity(self, fields: dict[str, Any]) -> dict[str, Any]:
        return self.request("POST", "/activities", fields)

    def update_activity(self, activity_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        return self.request("PUT", f"/activities/{activity_id}", fields)

    def register(self, username: str, password: str, name: str) -> dict[str, Any]:
        return self.request("POST", "/auth/register", {"username": username, "password": password, "name": name})

    def login(self, username: str, password: str) -> dict[str, Any]:
        return self.request("POST", "/auth/login", {"username": username, "password": password})

    def me(self) -> dict[str, Any] | None:
        try:
            body = self.request("GET", "/auth/me")
        except ApiError:
            return None
        return body.get("user") if isinstance(body, dict) else None

    def logout(self) -> None:
        try:
            self.request("POST", "/auth/logout")
        except ApiError as exc:
            logger.warning("client.logout_failed", extra={"error": exc.message})
        finally:
            self.http_client.cookies.clear()

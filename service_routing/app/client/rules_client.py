"""
HTTP client for the Routing Service rules API.
"""

from typing import Any, Dict, List, Mapping, Optional

import httpx

from shared.errors import (
    FrontdoorException, NotFoundError, UpstreamUnavailableError, ValidationError
)
from shared.logging import get_logger
from ..rules.validation import ensure_delete_confirmed


class RulesClient:
    """Client for managing routing rules over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.logger = get_logger("routing.rules.client")
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            self.logger.error("Routing service timeout", method=method, path=path)
            raise UpstreamUnavailableError("routing", "Routing service timeout") from e
        except httpx.RequestError as e:
            self.logger.error("Routing service request error", method=method, path=path, error=str(e))
            raise UpstreamUnavailableError("routing", "Routing service unavailable") from e

        if response.is_success:
            return response

        self.logger.warning(
            "Routing service request failed",
            method=method,
            path=path,
            status_code=response.status_code,
            response=response.text
        )
        raise self._error_from_response(response)

    def _error_from_response(self, response: httpx.Response) -> FrontdoorException:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or response.text or "Request failed"
        details = body.get("details") or {}

        if response.status_code == 404:
            return NotFoundError(message, details)
        if response.status_code == 400:
            return ValidationError(message, details)
        error = FrontdoorException(body.get("code") or "ROUTING_SERVICE_ERROR", message, details)
        error.status_code = response.status_code
        return error

    async def list_rules(self) -> List[Dict[str, Any]]:
        """Fetch all rules in store order."""
        response = await self._request("GET", "/rules")
        return response.json()

    async def get_rule(self, rule_id: str) -> Dict[str, Any]:
        response = await self._request("GET", f"/rules/{rule_id}")
        return response.json()

    async def create_rule(self, draft: Mapping[str, Any]) -> Dict[str, Any]:
        """Create a rule from a draft without id or timestamps."""
        response = await self._request("POST", "/rules", json=dict(draft))
        return response.json()

    async def update_rule(self, rule_id: str, patch: Mapping[str, Any]) -> Dict[str, Any]:
        response = await self._request("PUT", f"/rules/{rule_id}", json=dict(patch))
        return response.json()

    async def delete_rule(self, rule: Mapping[str, Any], confirmation: str) -> None:
        """Delete a rule once the typed confirmation matches its name.

        A mismatch raises ValidationError without contacting the service.
        """
        ensure_delete_confirmed(rule["name"], confirmation)
        await self._request("DELETE", f"/rules/{rule['id']}")
        self.logger.info("Rule deleted", rule_id=rule["id"], name=rule["name"])

    async def match(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        """Resolve the assignee for a normalized request."""
        response = await self._request("POST", "/rules/match", json=dict(request))
        return response.json()

"""
Routing service for Frontdoor.
"""

import time
from typing import Any, Awaitable, Dict, List, Optional, Union

from fastapi import APIRouter, Body, Query, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import (
    FrontdoorException, NotFoundError, UpstreamUnavailableError, UpstreamNotConfiguredError, ValidationError
)

from .chat import GenerationClient, relay_stream, sanitize_messages
from .persistence import RulePersistence, create_persistence
from .prompts import PromptComposer
from .rules import Assignee, RuleInput, RuleMatcher, RulePatch, RuleStore
from .rules.models import MatchResponse
from .rules.validation import validate_rule


class RoutingService(BaseService):
    """Routing service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        persistence: Optional[RulePersistence] = None,
        generation: Optional[GenerationClient] = None
    ):
        super().__init__("routing", 8999, config)

        self.persistence = persistence or create_persistence(self.config)
        self.store = RuleStore(self.persistence)
        self.matcher = RuleMatcher()
        self.fallback_contact = Assignee(
            name=self.config.fallback_contact_name,
            email=self.config.fallback_contact_email
        )
        self.composer = PromptComposer(self.fallback_contact)
        self.generation = generation or GenerationClient(
            api_key=self.config.openai_api_key,
            model=self.config.generation_model,
            base_url=self.config.openai_base_url,
            reasoning_effort=self.config.generation_reasoning_effort,
            timeout=self.config.generation_timeout_seconds
        )

        self._setup_routing_routes()

    def _setup_routing_routes(self):
        """Set up routing-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "routing",
                "message": "Frontdoor - Routing Service",
                "version": "1.0.0",
                "capabilities": ["rules", "matching", "chat"]
            }

        # Also served under /api/rules for the web client
        for prefix in ("/rules", "/api/rules"):
            self.app.include_router(self._rules_router(), prefix=prefix)

        @self.app.post("/api/chat")
        async def chat(request: Request):
            """Stream a routed reply from the generation service."""
            if not self.generation.configured:
                raise UpstreamNotConfiguredError()

            try:
                payload = await request.json()
            except ValueError:
                payload = None
            messages = sanitize_messages(
                payload.get("messages") if isinstance(payload, dict) else None
            )
            if not messages:
                raise ValidationError("messages array is empty or invalid")

            # Rules are read once per turn
            system_prompt = self.composer.compose_system_prompt(self.store.list_rules())
            conversation = [{"role": "system", "content": system_prompt}] + messages

            try:
                stream = await self.generation.open_stream(conversation)
            except UpstreamUnavailableError:
                self.metrics.increment_counter("chat_streams_total", outcome="upstream_unavailable")
                raise

            started = time.time()

            def on_finish(outcome: str):
                self.metrics.increment_counter("chat_streams_total", outcome=outcome)
                self.metrics.observe_histogram("chat_stream_duration_seconds", time.time() - started)

            return StreamingResponse(
                relay_stream(stream, on_finish),
                media_type="text/plain; charset=utf-8",
                headers={
                    "Cache-Control": "no-cache",
                    "X-Accel-Buffering": "no"
                }
            )

    def _rules_router(self) -> APIRouter:
        """Rule CRUD, matching and prompt preview routes."""
        router = APIRouter()

        @router.get("")
        async def list_rules():
            """List all rules in store order."""
            return [rule.to_wire() for rule in self.store.list_rules()]

        @router.post("", status_code=201)
        async def create_rule(request: RuleInput):
            """Create a new rule."""
            rule = await self._mutate("create", self.store.create_rule(request, validate=validate_rule))
            return JSONResponse(status_code=201, content=rule.to_wire())

        @router.post("/match", response_model=MatchResponse)
        async def match_request(
            request: Dict[str, Union[str, List[str]]] = Body(..., description="Normalized request fields")
        ):
            """Route a normalized request to a rule or the fallback contact."""
            rule = self.matcher.match(request, self.store.list_rules())
            self.metrics.increment_counter(
                "rule_matches_total", outcome="matched" if rule else "fallback"
            )
            return MatchResponse(
                matched=rule is not None,
                rule=rule.to_wire() if rule else None,
                assignee=rule.assignee if rule else self.fallback_contact
            )

        @router.get("/prompt")
        async def preview_prompt():
            """Show the rule block the generation service currently receives."""
            rules = self.store.list_rules()
            return {
                "rules": self.composer.render_rules(rules),
                "prompt": self.composer.compose_system_prompt(rules)
            }

        @router.get("/{rule_id}")
        async def get_rule(rule_id: str):
            """Get a rule by ID."""
            rule = self.store.get_rule(rule_id)
            if not rule:
                raise NotFoundError("Rule not found", details={"id": rule_id})
            return rule.to_wire()

        @router.put("/{rule_id}")
        async def update_rule(rule_id: str, request: RulePatch):
            """Update an existing rule."""
            rule = await self._mutate(
                "update", self.store.update_rule(rule_id, request, validate=validate_rule)
            )
            if not rule:
                raise NotFoundError("Rule not found", details={"id": rule_id})
            return rule.to_wire()

        @router.delete("/{rule_id}", status_code=204)
        async def delete_rule(
            rule_id: str,
            confirm: Optional[str] = Query(None, description="Rule name typed to confirm deletion")
        ):
            """Delete a rule."""
            if not await self._mutate("delete", self.store.delete_rule(rule_id, confirmation=confirm)):
                raise NotFoundError("Rule not found", details={"id": rule_id})
            return Response(status_code=204)

        return router

    async def _mutate(self, operation: str, mutation: Awaitable[Any]) -> Any:
        """Await a store mutation and count its outcome.

        A falsy result from the store means the rule id was unknown.
        """
        try:
            result = await mutation
        except FrontdoorException as e:
            self.metrics.increment_counter("rule_mutations_total", operation=operation, outcome=e.code.lower())
            raise

        self.metrics.increment_counter(
            "rule_mutations_total", operation=operation, outcome="ok" if result else "not_found"
        )
        return result

    async def _check_dependencies(self):
        """Check routing service dependencies."""
        return {
            "rules_storage": "ok" if await self.persistence.health_check() else "error",
            "generation": "configured" if self.generation.configured else "missing_credentials"
        }

    async def start(self):
        """Start routing service components.

        A rules medium that cannot be read aborts startup.
        """
        await self.persistence.start()
        count = await self.store.load()

        if not self.generation.configured:
            self.logger.warning("Generation API key is not set; chat requests will fail")

        self.logger.info(f"Routing service started with {count} rules")

    async def stop(self):
        """Stop routing service components."""
        await self.generation.close()
        await self.persistence.stop()

        self.logger.info("Routing service stopped")


def create_app(config: Optional[ServiceConfig] = None):
    """Create routing service application."""
    service = RoutingService(config)
    return service.app


if __name__ == "__main__":
    service = RoutingService()
    service.run()

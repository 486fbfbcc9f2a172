"""
Routing Service package for Frontdoor.

This package routes legal-intake requests to the right assignee using a
small set of user-editable rules, and streams chat replies from an external
generation service that applies those rules. It provides:

- app.main: API surface for rule CRUD, matching, chat and health.
- app.rules: Rule model, store, matcher and edit-boundary validation.
- app.persistence: JSON file (default) or PostgreSQL rule storage.
- app.prompts: Rendering of active rules into instruction text.
- app.chat: Message filtering, generation client and stream relay.
- app.client: HTTP client for the rules API.

Guidelines:
- The rule store is the single owner of the collection; mutate it only
  through its methods.
- Keep rule evaluation deterministic: store order is priority.
"""

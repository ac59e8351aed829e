# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Request/response schemas for the HTTP API and the agent tools.
# These are SEPARATE from the ORM models in peacock_agent/db/models.py, which
# mirror the ledger tables and are never exposed directly.
# =============================================================================

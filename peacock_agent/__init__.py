# =============================================================================
# Peacock Club Finance Agent
# =============================================================================
# Retrieval and upstream-access core for the Peacock Club chat assistant.
# The agent grounds its answers in two places: a semantic memory index built
# from the club ledger, and the live Peacock REST API.
#
# Package structure:
#   peacock_agent/
#   ├── api/          → FastAPI routes (health, memory status/search/rebuild,
#   │                    cache clearing)
#   ├── agents/       → Tool functions the chat agent calls
#   ├── db/           → Async engine and read-only ledger ORM models
#   ├── models/       → Pydantic V2 request/response schemas
#   └── services/     → Narratives, documents, memory index + registry,
#                        embeddings, session/cache layer, API client
# =============================================================================

# =============================================================================
# Services Package — Business Logic
# =============================================================================
# Memory index:
#   - fetchers.py: ledger snapshots (AccountLite, TxLite) via SQLAlchemy
#   - narrative.py: deterministic text for accounts, transactions, months
#   - documents.py: MemoryDocument + typed metadata, doc id scheme
#   - embedder.py: OpenAI-compatible embeddings behind EmbeddingProvider
#   - memory_store.py: in-process Chroma collection per build
#   - memory_builder.py: fetch → documents → embed → store
#   - store_registry.py: active store slot, single-flight (re)builds
#
# Upstream Peacock API:
#   - session.py: admin login and pc_auth cookie lifecycle
#   - api_cache.py: in-process response cache
#   - api_client.py: authenticated, cached request() + typed operations
# =============================================================================

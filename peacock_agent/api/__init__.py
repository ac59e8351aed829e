# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for a specific feature:
#   - admin.py: health check and upstream cache/session clearing
#   - memory.py: finance memory status, search and rebuild
#   - deps.py: dependencies resolving shared services from app.state
# =============================================================================

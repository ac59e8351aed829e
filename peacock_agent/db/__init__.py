# =============================================================================
# Database Package
# =============================================================================
#   - engine.py: Lazily created async engine + session factory
#   - models.py: Read-only ORM mapping of the Account / Transaction tables
# =============================================================================

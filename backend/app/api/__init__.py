# API module initialization
from .router import api_router
from .deps import get_db, verify_api_token

__all__ = ["api_router", "get_db", "verify_api_token"]

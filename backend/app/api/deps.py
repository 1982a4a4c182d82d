"""
SolBridge - API Dependencies
Dependency injection for endpoints
"""
from contextlib import contextmanager
from typing import Annotated, Iterator, Optional
import secrets

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import (
    raise_unauthorized, raise_not_found, raise_bad_request, raise_conflict,
    PositionNotFoundError, PositionStateError, InvalidExitRuleError,
)
from db.session import get_db as get_db_session
from db.repositories.position import PositionRepository
from services.exit_rules import ExitRuleService

# Security scheme; checked manually so an unset API_TOKEN leaves routes open
security = HTTPBearer(auto_error=False)


async def get_db():
    """Database session dependency"""
    async for session in get_db_session():
        yield session


async def verify_api_token(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)]
) -> None:
    """Bearer token shared with the Telegram front-end"""
    if not settings.API_TOKEN:
        return
    if credentials is None or not secrets.compare_digest(credentials.credentials, settings.API_TOKEN):
        raise_unauthorized("Invalid or missing API token")


async def get_exit_rule_service(
    db: Annotated[AsyncSession, Depends(get_db)]
) -> ExitRuleService:
    return ExitRuleService(PositionRepository(db))


@contextmanager
def domain_errors() -> Iterator[None]:
    """Map position errors onto HTTP responses"""
    try:
        yield
    except PositionNotFoundError:
        raise_not_found("Position")
    except PositionStateError as e:
        raise_conflict(e.message)
    except InvalidExitRuleError as e:
        raise_bad_request(e.message)


# Type aliases for cleaner endpoint signatures
DbSession = Annotated[AsyncSession, Depends(get_db)]
ExitRules = Annotated[ExitRuleService, Depends(get_exit_rule_service)]
ApiAuth = Depends(verify_api_token)

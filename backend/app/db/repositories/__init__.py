# Repositories module initialization
from .base import BaseRepository, RepositoryScope
from .position import PositionRepository, CloseResult
from .credential import CredentialRepository

__all__ = [
    "BaseRepository",
    "RepositoryScope",
    "PositionRepository",
    "CloseResult",
    "CredentialRepository",
]

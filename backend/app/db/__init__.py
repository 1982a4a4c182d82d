# Database module initialization
from .base import Base

__all__ = ["Base"]

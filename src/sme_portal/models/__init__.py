"""SME Portal Database Models.

This module contains SQLAlchemy models for countries, discovered SMEs and
the website and outreach email generated for each SME.
"""

from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# Import models to register them with Base metadata
from .country import Country
from .sme import Sme, SmeStatus
from .website import Website
from .email import Email

# Import database utilities
from .database import (
    DatabaseManager,
    get_db_session,
    ensure_database,
    init_database,
    close_database,
    create_test_engine,
)

__all__ = [
    # Base class
    "Base",
    # Models
    "Country",
    "Sme",
    "SmeStatus",
    "Website",
    "Email",
    # Database utilities
    "DatabaseManager",
    "get_db_session",
    "ensure_database",
    "init_database",
    "close_database",
    "create_test_engine",
]

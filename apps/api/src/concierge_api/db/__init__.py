"""Database module for the API.

Provides SQLAlchemy models, async database session management, and utilities.
"""

from concierge_api.db.database import Base, Database, get_db
from concierge_api.db.models import Conversation, Lead, Message

__all__ = [
    "Base",
    "Conversation",
    "Database",
    "Lead",
    "Message",
    "get_db",
]

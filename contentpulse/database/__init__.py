"""
ContentPulse Database Layer

Usage:
    from contentpulse.database import (
        init_db, get_db_context,
        Content,
        SqlContentStore, ContentRepository,
    )

    init_db()
    store = SqlContentStore()
    rows = await store.list_content(user_id, start=start, end=end)
"""

from .models import Base, Content
from .session import (
    check_db_connection,
    create_db_engine,
    create_session_factory,
    get_database_url,
    get_db_context,
    get_engine,
    get_session_factory,
    init_db,
)
from .repository import (
    ContentRepository,
    ContentStore,
    SqlContentStore,
    content_to_dict,
)

__all__ = [
    # Models
    "Base",
    "Content",
    # Session management
    "check_db_connection",
    "create_db_engine",
    "create_session_factory",
    "get_database_url",
    "get_db_context",
    "get_engine",
    "get_session_factory",
    "init_db",
    # Repository
    "ContentRepository",
    "ContentStore",
    "SqlContentStore",
    "content_to_dict",
]

from strava_mirror.db.session import async_session_maker, get_db, init_db
from strava_mirror.db.base import Base

__all__ = ["Base", "async_session_maker", "get_db", "init_db"]

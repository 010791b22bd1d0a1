from .session_store import SessionStore
from .time_utils import to_iso, utc_now

__all__ = [
    "SessionStore",
    "to_iso",
    "utc_now",
]

"""DuckDB persistence shared by the workspace and chat modules."""

from .database import Database, as_utc, utc_now

__all__ = ["Database", "as_utc", "utc_now"]

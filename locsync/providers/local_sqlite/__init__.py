from .store import SqliteLocalStore

__all__ = ["SqliteLocalStore"]

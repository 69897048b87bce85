from .client import BitableClient
from .remote_store import FeishuRemoteStore

__all__ = ["BitableClient", "FeishuRemoteStore"]

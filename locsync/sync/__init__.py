from .control import SyncControl
from .keys import Key
from .orchestrator import SyncOrchestrator
from .planner import Plan
from .schema import RecordDecoder, RemoteRecord, Status

__all__ = ["Key", "Plan", "RecordDecoder", "RemoteRecord", "Status", "SyncControl", "SyncOrchestrator"]

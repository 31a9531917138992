from .config import VetoConfig
from .errors import ErrorKind, ErrorSet
from .event import ChannelThresholds, VetoEvent, VetoRecord
from .results import CutFlags, OutputRecord, RunResult, RunSummary
from .run import RunContext, RunMetadata

__all__ = [
    "VetoConfig",
    "ErrorKind",
    "ErrorSet",
    "ChannelThresholds",
    "VetoEvent",
    "VetoRecord",
    "CutFlags",
    "OutputRecord",
    "RunResult",
    "RunSummary",
    "RunContext",
    "RunMetadata",
]

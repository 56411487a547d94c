"""k1s0 local_eval library."""

from .adapter import AdapterResult, DataAdapter, DataAdapterKey, InMemoryDataAdapter
from .client import LocalEvalClient
from .config import LocalEvalConfig, LogSection, load_config
from .dynamic_config import DynamicConfig
from .evaluator import Evaluator, IPResolver, UserAgentResolver
from .exceptions import LocalEvalError, LocalEvalErrorCodes
from .id_lists import IDList, IDListManager, IDListUpdate
from .logger import new_logger
from .models import Decision, EvaluationResult, SpecKind, User
from .network import HttpSpecNetwork, IDListMetadata, RangeResponse, SpecNetwork
from .snapshot import SpecSnapshot
from .specs import Condition, Rule, Specification
from .sync import SyncEngine, SyncState

__all__ = [
    "AdapterResult",
    "Condition",
    "DataAdapter",
    "DataAdapterKey",
    "Decision",
    "DynamicConfig",
    "EvaluationResult",
    "Evaluator",
    "HttpSpecNetwork",
    "IDList",
    "IDListManager",
    "IDListMetadata",
    "IDListUpdate",
    "IPResolver",
    "InMemoryDataAdapter",
    "LocalEvalClient",
    "LocalEvalConfig",
    "LocalEvalError",
    "LocalEvalErrorCodes",
    "LogSection",
    "RangeResponse",
    "Rule",
    "SpecKind",
    "SpecNetwork",
    "SpecSnapshot",
    "Specification",
    "SyncEngine",
    "SyncState",
    "User",
    "UserAgentResolver",
    "load_config",
    "new_logger",
]

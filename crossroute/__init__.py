"""crossroute: Resumable execution of multi-step cross-chain routes."""

from .cancellation import InteractionToken
from .clients import ClientRegistry
from .contracts import (
    Execution,
    ExecutionStatus,
    Process,
    ProcessStatus,
    ProcessType,
    Route,
    Step,
)
from .dispatch import RouteExecutionManager
from .errors import CrossrouteError, ExecutionError
from .execute import StepExecutionManager
from .interfaces import ExecutionSettings
from .observe import PollingObserver
from .persistence import get_repository
from .status import StatusManager

__version__ = "0.1.0"
__all__ = [
    "ClientRegistry",
    "CrossrouteError",
    "Execution",
    "ExecutionError",
    "ExecutionSettings",
    "ExecutionStatus",
    "InteractionToken",
    "PollingObserver",
    "Process",
    "ProcessStatus",
    "ProcessType",
    "Route",
    "RouteExecutionManager",
    "StatusManager",
    "Step",
    "StepExecutionManager",
    "get_repository",
]

"""relayhub — correlation tracking for a command hub and its remote agents.

The hub dispatches commands to agents, tags each with a correlation id, and
reconciles the agents' asynchronous callbacks against deadlines::

    from relayhub import CorrelationTracker

    tracker = CorrelationTracker()
    cid = tracker.generate_correlation_id()
    tracker.start_execution(cid, "stop-agent", "web-01", "stop-agent")
"""

__version__ = "0.3.0"

from relayhub.core.settings import RelayHubSettings  # noqa: E402
from relayhub.execution.models import Execution, ExecutionStatus  # noqa: E402
from relayhub.execution.tracker import CorrelationTracker  # noqa: E402

__all__ = [
    "CorrelationTracker",
    "Execution",
    "ExecutionStatus",
    "RelayHubSettings",
    "__version__",
]

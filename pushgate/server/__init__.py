"""Multi-process fan-out of notification delivery.

Each forked worker embeds its own connection and delivery engine.  The
parent distributes messages round robin over per-worker channels and
aggregates the workers' failed notifications.
"""

from pushgate.server.channels import ProcessQueues
from pushgate.server.dispatcher import RoundRobinDispatcher
from pushgate.server.fanout import FanoutServer
from pushgate.server.worker import CancellationToken, FanoutWorker

__all__ = [
    "CancellationToken",
    "FanoutServer",
    "FanoutWorker",
    "ProcessQueues",
    "RoundRobinDispatcher",
]

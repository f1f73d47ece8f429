"""pushgate: client for the legacy binary push-notification protocol.

v1.0.0:
  - Binary codec for notification frames, error responses and feedback tuples
  - TLS gateway connections with bounded connect retries
  - Pipelined delivery engine reconciling writes against delayed error frames
  - Feedback service reader
  - Multi-process fan-out server with signal-driven lifecycle
  - Typer CLI with Rich output
"""

__version__ = "1.0.0"
__description__ = "Client for the legacy binary push-notification protocol"

from pushgate.config import PushgateConfig
from pushgate.feedback.reader import FeedbackReader
from pushgate.message import Message
from pushgate.push.engine import PushEngine
from pushgate.server.fanout import FanoutServer
from pushgate.transport.connection import GatewayConnection

__all__ = [
    "FanoutServer",
    "FeedbackReader",
    "GatewayConnection",
    "Message",
    "PushEngine",
    "PushgateConfig",
    "__version__",
]

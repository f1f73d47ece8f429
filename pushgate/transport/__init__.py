"""Gateway connection management."""

from pushgate.transport.connection import GatewayConnection
from pushgate.transport.stream import GatewayStream

__all__ = ["GatewayConnection", "GatewayStream"]

"""Gateway environments, services and their fixed endpoints."""

from __future__ import annotations

from enum import Enum


class Environment(str, Enum):
    """Which gateway cluster to talk to."""

    PRODUCTION = "production"
    SANDBOX = "sandbox"


class Service(str, Enum):
    """The two services spoken over the binary protocol."""

    PUSH = "push"
    FEEDBACK = "feedback"


ENDPOINTS: dict[Service, dict[Environment, tuple[str, int]]] = {
    Service.PUSH: {
        Environment.PRODUCTION: ("gateway.push.apple.com", 2195),
        Environment.SANDBOX: ("gateway.sandbox.push.apple.com", 2195),
    },
    Service.FEEDBACK: {
        Environment.PRODUCTION: ("feedback.push.apple.com", 2196),
        Environment.SANDBOX: ("feedback.sandbox.push.apple.com", 2196),
    },
}

"""
Error taxonomy for the menu agent.

Every error is terminal for the operation that raised it and never for
the agent: the controller turns it into a user-visible message and
keeps running with whatever menu it has.
"""


class AgentError(Exception):
    """Base class for all agent errors."""


# ── Backend launch ───────────────────────────────────────────────

class LaunchError(AgentError):
    pass


class BinaryNotFound(LaunchError):
    def __init__(self, path):
        super().__init__(f"Server binary not found at: {path}")
        self.path = path


class SpawnFailed(LaunchError):
    def __init__(self, path, cause):
        super().__init__(f"Failed to start server: {cause}\nPath: {path}")
        self.path = path
        self.cause = cause


# ── Menu protocol ────────────────────────────────────────────────

class FetchError(AgentError):
    pass


class Unreachable(FetchError):
    def __init__(self, url, reason):
        super().__init__(f"Backend unreachable at {url}: {reason}")
        self.url = url
        self.reason = reason


class EmptyResponse(FetchError):
    def __init__(self, url):
        super().__init__(f"No data received from {url}")
        self.url = url


class DecodeError(FetchError):
    def __init__(self, reason):
        super().__init__(f"Invalid menu document: {reason}")
        self.reason = reason


class BadStatus(FetchError):
    def __init__(self, url, status):
        super().__init__(f"HTTP {status} from {url}")
        self.url = url
        self.status = status


# ── Dispatch ─────────────────────────────────────────────────────

class DispatchError(AgentError):
    pass


class UnknownActionType(DispatchError):
    def __init__(self, type_name):
        label = type_name or "none"
        super().__init__(f"Unknown action type: {label}")
        self.type_name = type_name


class InvalidTarget(DispatchError):
    def __init__(self, kind, target):
        super().__init__(f"Invalid {kind} target: {target!r}")
        self.kind = kind
        self.target = target

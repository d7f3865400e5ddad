# hotcontent/errors.py
"""
Error taxonomy for the hot-content pipeline.

Only ConfigurationError may abort a whole run. Everything else is caught
at the stage that raised it and recorded as a structured error entry.
"""


class HotContentError(Exception):
    """Base class for pipeline errors."""

    pass


class ConfigurationError(HotContentError):
    """Required configuration is missing. Fatal, raised before any fetch."""

    pass


class ConnectorError(HotContentError):
    """A single external source failed."""

    def __init__(self, connector: str, message: str):
        self.connector = connector
        super().__init__(f"{connector}: {message}")


class ConnectorRateLimitError(ConnectorError):
    """Source answered 429."""

    pass


class ConnectorServiceError(ConnectorError):
    """Source answered 5xx."""

    pass


class ConnectorTimeoutError(ConnectorError):
    """Source did not answer within the timeout."""

    pass


class PersistenceError(HotContentError):
    """A write failed after retries at the natural-key level."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"{key}: {message}")


class SafetyBlock(HotContentError):
    """Terminal policy rejection of an entity or content candidate."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class InvalidTransitionError(HotContentError):
    """Content state machine move that policy does not allow."""

    pass


class MergeAmbiguityWarning(UserWarning):
    """Records sharing a display name disagree on identity."""

    pass

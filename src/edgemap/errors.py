"""Exceptions raised by edgemap."""


class EdgeMapError(Exception):
    """Base exception for edge map operations."""


class EncodingError(EdgeMapError, ValueError):
    """Raised when an identifier or key breaks the key layout."""

    def __init__(self, value: object, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot encode {value!r}: {reason}")


class UsageError(EdgeMapError):
    """Raised when the graph map is used incorrectly."""


class GraphClosedError(UsageError):
    """Raised when an operation is issued after close()."""

    def __init__(self, namespace: str):
        self.namespace = namespace
        super().__init__(
            f"Graph map (namespace={namespace!r}) is closed"
        )

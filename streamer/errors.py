"""Exception hierarchy for the log streamer."""


class StreamerError(Exception):
    """Base class for every error raised by the streamer."""


class ConfigError(StreamerError):
    """Raised when configuration is missing, malformed, or resolves to nothing."""


class TailError(StreamerError):
    """Raised when a tailed file can no longer be read."""


class EncodeError(StreamerError):
    """Raised when a line cannot be serialized into a payload."""


class PublishError(StreamerError):
    """Raised when the bus rejects or fails to send a message."""


class BusConnectError(StreamerError):
    """Raised when the bus connection cannot be established."""


class DispatchError(StreamerError):
    """Raised when a tail worker thread cannot be spawned."""

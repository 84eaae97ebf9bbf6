class ServoBusError(RuntimeError):
    """Base class for every error raised by the servo bus layer."""
    pass


class TransportError(ServoBusError):
    """Raised when the byte stream cannot be opened, was closed, or a write failed."""
    pass


class NotConnectedError(TransportError):
    """Raised when an operation is issued on a session that is not open."""
    pass


class FrameError(ServoBusError):
    """Raised when a single complete frame is malformed."""
    pass


class ChecksumError(FrameError):
    """Raised when a frame's checksum does not match its contents."""
    def __init__(self, message, expected, actual):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class StopRequested(ServoBusError):
    """Raised by cooperative wait helpers after a stop was requested."""
    pass


class KinematicsError(ServoBusError):
    """Raised when no solver is configured or a pose is unreachable."""
    pass

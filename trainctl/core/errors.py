"""Domain-specific errors for trainctl."""


class TrainctlError(Exception):
    """Base error for trainctl."""


class ConfigValidationError(TrainctlError):
    """Raised when a settings file does not conform to schema or semantics."""


class ConfigLoadError(TrainctlError):
    """Raised when reading settings sources fails."""


class DeviceNotFoundError(TrainctlError):
    """Raised when an address is not known to the directory or transport."""


class PayloadError(TrainctlError, ValueError):
    """Raised when a characteristic payload cannot be decoded."""


class TransportError(TrainctlError):
    """Base transport error."""


class TransportScanError(TransportError):
    """Raised when starting or stopping a scan fails."""


class TransportConnectError(TransportError):
    """Raised on BLE connect/disconnect failures."""


class TransportReadError(TransportError):
    """Raised when a characteristic read fails."""


class TransportWriteError(TransportError):
    """Raised when a characteristic write fails."""


class TransportSubscribeError(TransportError):
    """Raised when enabling or disabling notifications fails."""


class TransportTimeoutError(TransportError):
    """Raised when a transport operation times out."""

"""Domain-specific errors for blesend."""


class BlesendError(Exception):
    """Base error for blesend."""


class ConfigLoadError(BlesendError):
    """Raised when the configuration file cannot be read."""


class ConfigValidationError(BlesendError):
    """Raised when the configuration does not conform to schema or semantics."""


class DeviceSelectionError(BlesendError):
    """Raised when a device hint cannot resolve a single discovered device."""


class RadioUnavailableError(BlesendError):
    """Raised when advertisement observation cannot be started."""


class ConnectError(BlesendError):
    """Base error for connect/resolve failures."""


class DeviceUnreachableError(ConnectError):
    """Raised when the platform cannot open a link to the device."""


class ServiceDiscoveryError(ConnectError):
    """Raised when GATT service enumeration fails."""

    def __init__(self, message: str, *, status: str | None = None) -> None:
        super().__init__(message)
        self.status = status


class CharacteristicNotFoundError(ConnectError):
    """Raised when no service exposes the writable target characteristic."""


class TransmitError(BlesendError):
    """Base error for payload transmission."""


class EmptyPayloadError(TransmitError):
    """Raised when the text to send is empty after trimming."""


class WriteFailedError(TransmitError):
    """Raised when the characteristic write fails."""

"""Domain-specific errors for thermalctl."""


class ThermalctlError(Exception):
    """Base error for thermalctl."""


class ConfigValidationError(ThermalctlError):
    """Raised when a profile, settings or order document is malformed."""


class ConfigLoadError(ThermalctlError):
    """Raised when reading configuration sources fails."""


class DeviceSelectionError(ThermalctlError):
    """Raised when device matching cannot resolve a single printer."""


class DeviceDiscoveryError(ThermalctlError):
    """Raised when scanning for Bluetooth printers fails."""


class TransportError(ThermalctlError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised when opening or re-acquiring a printer link fails."""


class TransportSendError(TransportError):
    """Raised when a write fails on a link that is still connected."""


class ConnectionLostError(TransportError):
    """Raised when a write fails because the link went down."""


class NotConnectedError(TransportError):
    """Raised when a write is attempted without a printer link."""

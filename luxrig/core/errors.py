"""Bridge exceptions — raised by core components, mapped to HTTP responses in luxrig.api."""


class BridgeError(Exception):
    """Base class for all bridge failures."""


class UpstreamUnavailable(BridgeError):
    """The local provider refused or dropped the connection."""


class UpstreamTimeout(BridgeError):
    """The local provider did not answer within the configured deadline."""


class RequestCancelled(BridgeError):
    """The caller went away before the upstream answered."""


class LocalProviderError(BridgeError):
    """The local provider answered, but with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderUnavailable(BridgeError):
    """A health probe could not confirm the provider is serving."""


class UnknownCollection(BridgeError):
    pass


class ItemNotFound(BridgeError):
    pass

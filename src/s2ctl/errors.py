"""Exceptions raised by s2ctl.

Setup errors (configuration, parsing) abort a run before any network activity,
while transfer and post-processing errors are confined to a single product.
"""


class S2CtlError(Exception):
    pass


class ConfigurationError(S2CtlError):
    """Inputs that cannot be turned into a runnable search or download."""


class UnknownTileError(ConfigurationError, KeyError):
    def __init__(self, tile_ids: list[str]):
        self.tile_ids = tile_ids
        super().__init__(f"Unknown tile identifier(s): {', '.join(tile_ids)}")

    def __str__(self) -> str:
        # KeyError would otherwise quote the message
        return self.args[0]


class ParseError(S2CtlError, ValueError):
    pass


class EndpointUnavailableError(S2CtlError):
    pass


class AuthenticationError(S2CtlError):
    pass


class SearchError(S2CtlError):
    pass


class TransferError(S2CtlError):
    pass


class PostProcessError(S2CtlError):
    pass

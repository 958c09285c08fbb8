"""Error taxonomy for snapshot parsing, name resolution and link mutation."""


class PatchbayError(Exception):
    """Base class for every error raised by the engine."""


class MalformedSnapshot(PatchbayError):
    """The raw graph dump could not be parsed as structured data."""


class InputError(PatchbayError):
    """User-supplied text does not match the address or connection grammar."""


class InvalidFormat(InputError):
    pass


class InvalidAddress(InputError):
    pass


class ResolutionError(PatchbayError):
    """A well-formed address does not resolve against the current snapshot."""


class NodeNotFound(ResolutionError):
    pass


class PortNotFound(ResolutionError):
    pass


class LinkNotFound(ResolutionError):
    pass


class MutationFailed(PatchbayError):
    """One or more link create/destroy calls reported failure."""

    def __init__(self, failures: list[str]):
        self.failures = failures
        super().__init__(f"{len(failures)} link operation(s) failed: {failures}")

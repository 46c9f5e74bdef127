"""Error taxonomy for invoice generation.

Every pipeline step either returns normally or raises one of these. The
orchestrator maps them onto ``InvoiceResult.error_kind``; message text is
only ever shown to humans.
"""


class InvoiceError(Exception):
    """Base class for invoice pipeline failures."""
    kind = "error"


class ConfigurationError(InvoiceError):
    """A setting is missing or malformed (bad cell address, bad period...)."""
    kind = "configuration"


class NotFoundError(InvoiceError):
    """A file, folder or sheet could not be located by its identifier."""
    kind = "not_found"

    def __init__(self, what: str, identifier: str, available: list[str] | None = None):
        self.what = what
        self.identifier = identifier
        self.available = list(available or [])
        message = f"{what} not found: {identifier}"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        super().__init__(message)


class TransientIOError(InvoiceError):
    """An external call failed (HTTP, WebDAV, LibreOffice)."""
    kind = "transient_io"


class DataError(InvoiceError):
    """Data read from a collaborator is unusable."""
    kind = "data"

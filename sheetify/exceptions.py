"""Custom exceptions for sheetify."""


class SheetifyError(Exception):
    """Base exception for sheetify."""

    pass


class ConfigurationError(SheetifyError):
    """Exception raised when configuration is invalid."""

    pass


class DocumentError(SheetifyError):
    """Exception raised when an uploaded document cannot be read."""

    pass


class InvalidPageRangeError(SheetifyError):
    """Exception raised when a requested page range does not fit the document."""

    pass


class RenderError(SheetifyError):
    """Exception raised when a page cannot be rasterized."""

    def __init__(self, message: str, page_number: int = 0) -> None:
        super().__init__(message)
        self.page_number = page_number


class RemoteCallError(SheetifyError):
    """Exception raised when a call to the inference service fails."""

    pass


class StoreUnavailable(SheetifyError):
    """Exception raised when the session store cannot be reached."""

    pass

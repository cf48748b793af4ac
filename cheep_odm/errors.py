import typing as t


class OdmError(Exception):
    """Base class for the errors raised by this package."""


class CallerInputError(OdmError, ValueError):
    """A required document, or a required document ID, was not provided."""


class ConfigurationError(OdmError):
    """
    The package was not set up correctly, e.g. a record class was never registered as a collection, or a MongoDB URI
    does not name a database.
    """

    def __init__(self, message: str, *, uri: t.Optional[str] = None):
        super().__init__(message)
        self.uri = uri


class FormatError(OdmError, ValueError):
    """A value read from a document could not be decoded into its type."""

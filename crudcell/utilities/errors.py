"""
Errors raised by crudcell.

Client errors (BadRequestError and its subclasses, DocumentNotFoundError, MoreThanOneDocumentFoundError) carry
messages that are safe to share with the caller of the HTTP layer.
InvalidArgumentsError and SetupError are programmer/configuration mistakes. Their messages are for logs only.
Errors raised by pymongo are never wrapped.
"""


class CrudCellError(Exception):
    """ Base class for every error raised by the framework itself. """
    code: str = "CRUDCELL"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class InvalidArgumentsError(CrudCellError):
    """ An internal method was called with arguments of the wrong shape. Always a programmer mistake. """
    code = "INVALID_ARGUMENTS"
    status_code = 500


class SetupError(CrudCellError):
    """Exception raised for configuration errors."""
    code = "SETUP"
    status_code = 500


class BadRequestError(CrudCellError):
    """ The client sent something that does not fit the schema.
    NOTE: Messages in these errors should be shareable to the user. """
    code = "BAD_REQUEST"
    status_code = 400


class LanguageError(BadRequestError):
    """ A multilingual field received a language code that is not configured. """
    code = "LANGUAGE"


class DocumentNotFoundError(CrudCellError):
    code = "DOCUMENT_NOT_FOUND"
    status_code = 404

    def __init__(self, message: str = "The requested document was not found.") -> None:
        super().__init__(message)


class MoreThanOneDocumentFoundError(CrudCellError):
    code = "MORE_THAN_ONE_DOCUMENT_FOUND"
    status_code = 409

    def __init__(self, message: str = "More than one document matched a query that must match exactly one.") -> None:
        super().__init__(message)


class VersionConflictError(BadRequestError):
    """ Raised when the version a caller supplies does not match the document's version. """
    status_code = 409

    def __init__(self, message: str, document_version: int, version: int) -> None:
        self.document_version = document_version
        self.version = version
        super().__init__(message)


class InvalidVersionError(VersionConflictError):
    """ The caller claims a version the document has not reached. """
    code = "DOCUMENT_INVALID_VERSION"

    def __init__(self, document_version: int, version: int) -> None:
        super().__init__(
            f"The requested document's latest version is {document_version}. You have the version {version}.",
            document_version,
            version
        )


class DocumentModifiedError(VersionConflictError):
    """ The document was modified after the caller read it. """
    code = "DOCUMENT_MODIFIED"

    def __init__(self, document_version: int, version: int) -> None:
        super().__init__(
            f"The requested document has been modified. The latest version is {document_version}. You have the version {version}.",
            document_version,
            version
        )

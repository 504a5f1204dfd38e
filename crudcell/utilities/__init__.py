from .errors import (
    CrudCellError,
    InvalidArgumentsError,
    SetupError,
    BadRequestError,
    LanguageError,
    DocumentNotFoundError,
    MoreThanOneDocumentFoundError,
    VersionConflictError,
    InvalidVersionError,
    DocumentModifiedError,
)
from .logger import set_logger, set_log_level

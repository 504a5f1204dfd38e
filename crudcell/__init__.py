"""
crudcell: schema-driven, versioned CRUD over MongoDB.

A collection is described once with a framework definition (a $jsonSchema dialect with per-operation
controller flags, persona restrictions and multilingual fields). From it crudcell enforces the physical
validator, coerces untyped client input, authorizes it per operation and runs compare-and-swap mutations
on the `version` field inside transactions.
"""

# Expose these at the module level
from .utilities import (
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
    set_logger,
    set_log_level,
)
from .schema import BsonType, Operation, Schema, SchemaRegistry, define_schema
from .db.mongo_db import create_mongo_client, get_default_db_name
from .db.db_operation import DbOperation
from .db.session_manager import SessionManager, DEFAULT_TRANSACTION_OPTIONS
from .services import Hooks, ApplicationService, ControllerService

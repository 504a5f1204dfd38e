import pytest

from crudcell.db.db_operation import DbOperation
from crudcell.db.session_manager import SessionManager
from crudcell.schema.schema import Schema
from crudcell.services.application_service import ApplicationService
from crudcell.services.controller_service import ControllerService

from .definitions import BOOK_DEFINITION, LANGUAGES
from .fakes import FakeClient, FakeCollection


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()

@pytest.fixture
def schema(client: FakeClient) -> Schema:
    return Schema(client, "library", "books", BOOK_DEFINITION, languages=LANGUAGES)

@pytest.fixture
def collection(schema: Schema) -> FakeCollection:
    return schema.collection

@pytest.fixture
def db_operation(schema: Schema) -> DbOperation:
    return DbOperation(schema)

@pytest.fixture
def session_manager(client: FakeClient) -> SessionManager:
    return SessionManager(client)

@pytest.fixture
def application_service(db_operation: DbOperation, session_manager: SessionManager) -> ApplicationService:
    return ApplicationService(db_operation, session_manager)

@pytest.fixture
def controller_service(schema: Schema, session_manager: SessionManager) -> ControllerService:
    return ControllerService.for_schema(schema, session_manager)

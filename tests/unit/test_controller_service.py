import pytest
from bson import ObjectId

from crudcell.schema.schema import Schema
from crudcell.services.controller_service import ControllerService
from crudcell.services.hooks import Hooks
from crudcell.utilities.errors import (
    BadRequestError,
    DocumentModifiedError,
    DocumentNotFoundError,
    InvalidArgumentsError,
    LanguageError,
)

from ..fakes import FakeClient, FakeCollection


@pytest.fixture
def book(controller_service: ControllerService) -> dict:
    return controller_service.create_one({"author": "Herbert", "title": {"en": "Dune"}, "pages": "412"})


class TestConstruction:
    def test_for_schema_runs_in_crud_controller_mode(self, schema: Schema):
        controller_service = ControllerService.for_schema(schema)
        assert controller_service.application_service.raise_document_existence_errors is True
        assert controller_service.schema is schema
        assert controller_service.session_manager.client is schema.database.client

    def test_requires_an_application_service(self):
        with pytest.raises(InvalidArgumentsError):
            ControllerService("service")


class TestCreateOne:
    def test_creates_at_version_zero(self, book: dict):
        assert book["version"] == 0
        assert book["pages"] == 412
        assert book["title"] == {"en": "Dune"}

    def test_version_is_not_allowed(self, controller_service: ControllerService, collection: FakeCollection):
        with pytest.raises(BadRequestError, match="Field 'version' is not allowed for createOne."):
            controller_service.create_one({"author": "Herbert", "version": 7})
        assert collection.documents == []

    def test_unknown_field(self, controller_service: ControllerService):
        with pytest.raises(BadRequestError, match="Unknown field 'extra'."):
            controller_service.create_one({"author": "Herbert", "extra": 1})

    def test_unknown_language(self, controller_service: ControllerService):
        with pytest.raises(LanguageError):
            controller_service.create_one({"title": {"xx": "Dune"}})

    def test_body_must_be_an_object(self, controller_service: ControllerService):
        with pytest.raises(BadRequestError):
            controller_service.create_one(["author"])

    def test_skip_hook(self, controller_service: ControllerService):
        document = controller_service.create_one({"author": "Herbert", "legacyId": 3}, hooks=Hooks(skip=lambda skip: ["legacyId"]))
        assert document["legacyId"] == 3


class TestRead:
    def test_returns_documents_and_count(self, controller_service: ControllerService, book: dict):
        controller_service.create_one({"author": "Asimov", "pages": 255})
        controller_service.create_one({"author": "Le Guin", "pages": 248})

        result = controller_service.read({"pages": {"$gt": "250"}}, {"sort": {"pages": 1}, "limit": 1})
        assert [document["author"] for document in result["documents"]] == ["Asimov"]
        assert result["count"] == 2

    def test_query_is_authorized(self, controller_service: ControllerService):
        with pytest.raises(BadRequestError):
            controller_service.read({"isSoftDeleted": True})
        with pytest.raises(BadRequestError):
            controller_service.read({"extra": 1})

    def test_read_one_by_id(self, controller_service: ControllerService, book: dict):
        assert controller_service.read_one_by_id(str(book["_id"]))["author"] == "Herbert"
        with pytest.raises(DocumentNotFoundError):
            controller_service.read_one_by_id(ObjectId())

    def test_after_hook_sees_the_result(self, controller_service: ControllerService, book: dict):
        seen = []
        controller_service.read({}, hooks=Hooks(after=lambda result, session: seen.append(result["count"])))
        assert seen == [1]


class TestSearch:
    def test_case_insensitive_match_over_fields(self, controller_service: ControllerService, book: dict):
        controller_service.create_one({"author": "Asimov", "title": {"en": "Foundation"}})

        result = controller_service.search("dUN", {}, ["author", "title.en"])
        assert [document["author"] for document in result["documents"]] == ["Herbert"]
        assert result["count"] == 1

    def test_value_is_matched_literally(self, controller_service: ControllerService, book: dict):
        assert controller_service.search(".*", {}, ["author"])["count"] == 0

    def test_combines_with_an_existing_or(self, controller_service: ControllerService, book: dict):
        controller_service.create_one({"author": "Herbert Jr", "pages": 10})

        result = controller_service.search("herbert", {"$or": [{"pages": {"$gt": "100"}}, {"pages": {"$lt": "5"}}]}, ["author"])
        assert [document["pages"] for document in result["documents"]] == [412]

    def test_search_fields_must_exist(self, controller_service: ControllerService):
        with pytest.raises(InvalidArgumentsError):
            controller_service.search("x", {}, ["publisher.country"])
        with pytest.raises(InvalidArgumentsError):
            controller_service.search("x", {}, [])

    def test_value_must_be_a_string(self, controller_service: ControllerService):
        with pytest.raises(BadRequestError):
            controller_service.search(5, {}, ["author"])


class TestMutations:
    def test_update_one_by_id_and_version(self, controller_service: ControllerService, book: dict):
        updated = controller_service.update_one_by_id_and_version(str(book["_id"]), "0", {"pages": "500"})
        assert updated["pages"] == 500
        assert updated["version"] == 1

        with pytest.raises(DocumentModifiedError):
            controller_service.update_one_by_id_and_version(book["_id"], 0, {"pages": 1})

    def test_update_respects_controller_flags(self, controller_service: ControllerService, book: dict):
        with pytest.raises(BadRequestError, match="'isbn'"):
            controller_service.update_one_by_id_and_version(book["_id"], 0, {"isbn": "1"})
        with pytest.raises(BadRequestError, match="'version'"):
            controller_service.update_one_by_id_and_version(book["_id"], 0, {"version": 4})

    def test_replace_one_by_id_and_version(self, controller_service: ControllerService, book: dict):
        replaced = controller_service.replace_one_by_id_and_version(book["_id"], 0, {"author": "Frank Herbert"})
        assert replaced["author"] == "Frank Herbert"
        assert "pages" not in replaced

    def test_soft_delete_and_delete(self, controller_service: ControllerService, collection: FakeCollection, book: dict):
        deleted = controller_service.soft_delete_one_by_id_and_version(book["_id"], 0)
        assert deleted["isSoftDeleted"] is True
        with pytest.raises(DocumentNotFoundError):
            controller_service.read_one_by_id(book["_id"])

        other = controller_service.create_one({"author": "Asimov"})
        controller_service.delete_one_by_id_and_version(other["_id"], 0)
        assert len(collection.documents) == 1

    def test_missing_document(self, controller_service: ControllerService):
        with pytest.raises(DocumentNotFoundError):
            controller_service.soft_delete_one_by_id_and_version(ObjectId(), 0)

    def test_before_hook_gets_the_request_values(self, controller_service: ControllerService, book: dict):
        seen = []
        controller_service.update_one_by_id_and_version(
            book["_id"], 0, {"pages": 1},
            hooks=Hooks(before=lambda _id, version, fields, session: seen.append((_id, version, fields)))
        )
        assert seen == [(book["_id"], 0, {"pages": 1})]

    def test_session_hook_wraps_hooks_and_write_in_one_transaction(self, client: FakeClient, controller_service: ControllerService, collection: FakeCollection, book: dict):
        def fail(document, session):
            raise RuntimeError("after hook failed")

        with pytest.raises(RuntimeError):
            controller_service.update_one_by_id_and_version(book["_id"], 0, {"pages": 1}, hooks=Hooks(is_session_enabled=True, after=fail))
        assert collection.documents[0]["pages"] == 412
        assert client.open_session_count == 0


class TestSoftDeleteMany:
    def test_reports_failures_per_item(self, controller_service: ControllerService, collection: FakeCollection, book: dict):
        other = controller_service.create_one({"author": "Asimov"})
        missing = ObjectId()

        result = controller_service.soft_delete_many_by_id_and_version([
            {"_id": str(book["_id"]), "version": 0},
            {"_id": other["_id"], "version": 3},
            {"_id": missing, "version": 0},
        ])

        assert [document["_id"] for document in result["documents"]] == [book["_id"]]
        assert [(error["_id"], error["code"]) for error in result["errors"]] == [
            (other["_id"], "DOCUMENT_INVALID_VERSION"),
            (missing, "DOCUMENT_NOT_FOUND"),
        ]
        assert collection.find_one({"_id": other["_id"]})["isSoftDeleted"] is False

    def test_items_are_validated_first(self, controller_service: ControllerService, collection: FakeCollection, book: dict):
        with pytest.raises(BadRequestError):
            controller_service.soft_delete_many_by_id_and_version([{"_id": book["_id"], "version": 0}, {"_id": "bad", "version": 0}])
        assert collection.documents[0]["isSoftDeleted"] is False

    def test_requires_a_list(self, controller_service: ControllerService):
        with pytest.raises(BadRequestError):
            controller_service.soft_delete_many_by_id_and_version({"_id": ObjectId(), "version": 0})

    def test_stale_versions_are_not_written_in_an_external_session(self, client: FakeClient, controller_service: ControllerService, collection: FakeCollection, book: dict):
        controller_service.update_one_by_id_and_version(book["_id"], 0, {"pages": 500})
        external = client.start_session()

        result = controller_service.soft_delete_many_by_id_and_version([{"_id": book["_id"], "version": 0}], session=external)

        assert result["documents"] == []
        assert [error["code"] for error in result["errors"]] == ["DOCUMENT_MODIFIED"]
        stored = collection.find_one({"_id": book["_id"]})
        assert stored["isSoftDeleted"] is False
        assert stored["version"] == 1
        assert external.end_count == 0

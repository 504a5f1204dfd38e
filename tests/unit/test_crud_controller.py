import pytest
from bson import ObjectId, json_util
from flask import Flask

from crudcell.controllers.crud_controller import CrudController, register_crud_routes
from crudcell.services.controller_service import ControllerService

from ..fakes import FakeCollection


@pytest.fixture
def app(controller_service: ControllerService) -> Flask:
    app = Flask(__name__)
    register_crud_routes(app, "/books", CrudController(controller_service, search_fields=("author",)))
    return app

@pytest.fixture
def http(app: Flask):
    return app.test_client()

@pytest.fixture
def book(controller_service: ControllerService) -> dict:
    return controller_service.create_one({"author": "Herbert", "pages": 412, "tags": ["scifi"]})


def body(response):
    return json_util.loads(response.get_data(as_text=True))


class TestCrudController:
    def test_create_one(self, http, collection: FakeCollection):
        response = http.post("/books", json={"author": "Herbert", "pages": "412"})

        assert response.status_code == 201
        document = body(response)
        assert document["version"] == 0
        assert document["pages"] == 412
        assert isinstance(document["_id"], ObjectId)
        assert len(collection.documents) == 1

    def test_client_errors_carry_code_and_message(self, http):
        response = http.post("/books", json={"author": "Herbert", "extra": 1})

        assert response.status_code == 400
        assert body(response) == {"code": "BAD_REQUEST", "message": "Unknown field 'extra'."}

    def test_body_must_be_json_object(self, http):
        response = http.post("/books", data="not json", content_type="text/plain")
        assert response.status_code == 400

    def test_read_with_filters_and_options(self, http, controller_service: ControllerService, book: dict):
        controller_service.create_one({"author": "Asimov", "pages": 255, "tags": ["robots"]})
        controller_service.create_one({"author": "Le Guin", "pages": 248, "tags": ["scifi"]})

        result = body(http.get("/books?tags=scifi&sort=-pages&limit=1"))
        assert [document["author"] for document in result["documents"]] == ["Herbert"]
        assert result["count"] == 2

        result = body(http.get("/books?author=Asimov&author=Le%20Guin&sort=pages"))
        assert [document["author"] for document in result["documents"]] == ["Le Guin", "Asimov"]

    def test_search(self, http, controller_service: ControllerService, book: dict):
        controller_service.create_one({"author": "Asimov"})
        result = body(http.get("/books?search=herb"))
        assert [document["author"] for document in result["documents"]] == ["Herbert"]

    def test_invalid_options(self, http):
        assert http.get("/books?limit=-1").status_code == 400
        assert http.get("/books?skip=many").status_code == 400
        assert http.get("/books?sort=,").status_code == 400

    def test_read_one_by_id(self, http, book: dict):
        response = http.get(f"/books/{book['_id']}")
        assert response.status_code == 200
        assert body(response)["author"] == "Herbert"

        response = http.get(f"/books/{ObjectId()}")
        assert response.status_code == 404
        assert body(response)["code"] == "DOCUMENT_NOT_FOUND"

        assert http.get("/books/not-an-id").status_code == 400

    def test_update_and_version_conflict(self, http, book: dict):
        response = http.patch(f"/books/{book['_id']}?version=0", json={"pages": 500})
        assert response.status_code == 200
        assert body(response)["version"] == 1

        response = http.patch(f"/books/{book['_id']}?version=0", json={"pages": 600})
        assert response.status_code == 409
        assert body(response)["code"] == "DOCUMENT_MODIFIED"

    def test_version_is_required(self, http, book: dict):
        response = http.patch(f"/books/{book['_id']}", json={"pages": 500})
        assert response.status_code == 400
        assert body(response)["message"] == "A version is required."

    def test_replace(self, http, book: dict):
        response = http.put(f"/books/{book['_id']}?version=0", json={"author": "Frank Herbert"})
        assert response.status_code == 200
        assert "pages" not in body(response)

    def test_delete_is_a_soft_delete(self, http, collection: FakeCollection, book: dict):
        response = http.delete(f"/books/{book['_id']}?version=0")
        assert response.status_code == 200
        assert body(response)["isSoftDeleted"] is True
        assert len(collection.documents) == 1
        assert http.get(f"/books/{book['_id']}").status_code == 404

    def test_unexpected_errors_do_not_leak(self, http, controller_service: ControllerService, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("connection string with password")
        monkeypatch.setattr(controller_service, "read", explode)

        response = http.get("/books")
        assert response.status_code == 500
        assert body(response) == {"code": "INTERNAL", "message": "Internal server error."}

    def test_server_side_framework_errors_do_not_leak(self, controller_service: ControllerService):
        controller = CrudController(controller_service, search_fields=("publisher.country",))
        app = Flask(__name__)
        register_crud_routes(app, "/broken", controller)

        response = app.test_client().get("/broken?search=x")
        assert response.status_code == 500
        assert body(response)["code"] == "INTERNAL"

    def test_dotted_url_prefix(self, controller_service: ControllerService, book: dict):
        app = Flask(__name__)
        blueprint = register_crud_routes(app, "/v1.0/books", CrudController(controller_service))

        assert blueprint.name == "crud_v1_0_books"
        response = app.test_client().get(f"/v1.0/books/{book['_id']}")
        assert response.status_code == 200
        assert body(response)["author"] == "Herbert"

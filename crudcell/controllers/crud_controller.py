from enum import StrEnum, auto
from typing import Any

from bson import json_util
from bson.json_util import RELAXED_JSON_OPTIONS
from flask import Blueprint, Flask, Response, request
from werkzeug.datastructures import MultiDict
from werkzeug.exceptions import HTTPException

from ..coercion.coerce_primitive import coerce_integer
from ..schema.field_path import FieldPath
from ..services.controller_service import ControllerService
from ..utilities.errors import CrudCellError, BadRequestError
from ..utilities.logger import logger

# Query string keys that shape the result instead of filtering it
LIMIT = "limit"
SKIP = "skip"
SORT = "sort"
SEARCH = "search"
VERSION = "version"
OPTION_KEYS = (LIMIT, SKIP, SORT, SEARCH)


class Method(StrEnum):
	GET = auto()
	POST = auto()
	PUT = auto()
	PATCH = auto()
	DELETE = auto()


class CrudController:
	""" Turns Flask requests into ControllerService calls for one collection.

	GET    /                 read (or search, when ?search= is given and search fields are configured)
	GET    /<_id>            read one by id
	POST   /                 create one from the JSON body
	PATCH  /<_id>?version=n  update one with the JSON body
	PUT    /<_id>?version=n  replace one with the JSON body
	DELETE /<_id>?version=n  soft delete one

	Query strings are filters: `?name=Ada&age=36` becomes {"name": "Ada", "age": "36"}, which coercion turns into the schema's types.
	A key given more than once becomes an $in filter. `limit`, `skip` and `sort` (`name,-age`) become options.
	"""

	def __init__(self, controller_service: ControllerService, search_fields: tuple[str, ...] = ()) -> None:
		self.controller_service = controller_service
		self.search_fields = search_fields

	def read(self) -> Response:
		query = _extract_query(request.args)
		options = _extract_options(request.args)
		value = request.args.get(SEARCH)
		if value is not None and self.search_fields:
			result = self.controller_service.search(value, query, self.search_fields, options)
		else:
			result = self.controller_service.read(query, options)
		return _make_json_response(result)

	def read_one_by_id(self, _id: str) -> Response:
		return _make_json_response(self.controller_service.read_one_by_id(_id))

	def create_one(self) -> Response:
		document = self.controller_service.create_one(_extract_body())
		return _make_json_response(document, 201)

	def update_one_by_id_and_version(self, _id: str) -> Response:
		document = self.controller_service.update_one_by_id_and_version(_id, request.args.get(VERSION), _extract_body())
		return _make_json_response(document)

	def replace_one_by_id_and_version(self, _id: str) -> Response:
		document = self.controller_service.replace_one_by_id_and_version(_id, request.args.get(VERSION), _extract_body())
		return _make_json_response(document)

	def soft_delete_one_by_id_and_version(self, _id: str) -> Response:
		document = self.controller_service.soft_delete_one_by_id_and_version(_id, request.args.get(VERSION))
		return _make_json_response(document)


def register_crud_routes(app: Flask, url_prefix: str, controller: CrudController) -> Blueprint:
	""" Registers the CRUD rules of one collection under url_prefix.
	The rules live in their own blueprint, so its error handlers only apply to them. """
	# Blueprint names cannot contain dots
	name = url_prefix.strip("/").replace("/", "_").replace(".", "_") or controller.controller_service.schema.collection_name
	blueprint = Blueprint(f"crud_{name}", __name__, url_prefix=url_prefix)

	blueprint.add_url_rule("", "read", controller.read, methods=[Method.GET.value], strict_slashes=False)
	blueprint.add_url_rule("/<_id>", "read_one_by_id", controller.read_one_by_id, methods=[Method.GET.value])
	blueprint.add_url_rule("", "create_one", controller.create_one, methods=[Method.POST.value], strict_slashes=False)
	blueprint.add_url_rule("/<_id>", "update_one_by_id_and_version", controller.update_one_by_id_and_version, methods=[Method.PATCH.value])
	blueprint.add_url_rule("/<_id>", "replace_one_by_id_and_version", controller.replace_one_by_id_and_version, methods=[Method.PUT.value])
	blueprint.add_url_rule("/<_id>", "soft_delete_one_by_id_and_version", controller.soft_delete_one_by_id_and_version, methods=[Method.DELETE.value])

	blueprint.register_error_handler(CrudCellError, _handle_crud_cell_error)
	blueprint.register_error_handler(Exception, _handle_unexpected_error)

	app.register_blueprint(blueprint)
	logger.info(f"Registered CRUD routes for collection '{controller.controller_service.schema.collection_name}' under {url_prefix}")
	return blueprint


def _extract_query(args: MultiDict) -> dict[str, Any]:
	query: dict[str, Any] = {}
	for key, values in args.lists():
		if key in OPTION_KEYS:
			continue
		query[key] = values[0] if len(values) == 1 else {"$in": values}
	return query

def _extract_options(args: MultiDict) -> dict[str, Any]:
	options: dict[str, Any] = {}
	for key in (LIMIT, SKIP):
		if key in args:
			value = coerce_integer(args[key], FieldPath(key))
			if value < 0:
				raise BadRequestError(f"{key} must be a non-negative integer, but got {value}.")
			options[key] = value

	if args.get(SORT):
		sort: dict[str, int] = {}
		for field_name in args[SORT].split(","):
			field_name = field_name.strip()
			if not field_name or field_name == "-":
				raise BadRequestError(f"Malformed sort '{args[SORT]}'.")
			if field_name.startswith("-"):
				sort[field_name[1:]] = -1
			else:
				sort[field_name] = 1
		options[SORT] = sort
	return options

def _extract_body() -> Any:
	body = request.get_json(silent=True)
	if not isinstance(body, dict):
		raise BadRequestError("The request body must be a JSON object.")
	return body

def _make_json_response(payload: Any, status: int = 200) -> Response:
	return Response(json_util.dumps(payload, json_options=RELAXED_JSON_OPTIONS), status=status, mimetype="application/json")

def _handle_crud_cell_error(error: CrudCellError) -> Response:
	# Only client errors carry messages meant for the caller
	if error.status_code >= 500:
		logger.error(f"{type(error).__name__} while handling {request.method} {request.path}: {error.message}")
		return _make_json_response({"code": "INTERNAL", "message": "Internal server error."}, 500)
	return _make_json_response(error.to_dict(), error.status_code)

def _handle_unexpected_error(error: Exception) -> Response | HTTPException:
	if isinstance(error, HTTPException):
		return error
	logger.exception(f"Unexpected error while handling {request.method} {request.path}: {error}")
	return _make_json_response({"code": "INTERNAL", "message": "Internal server error."}, 500)

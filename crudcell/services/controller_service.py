import re
from typing import Any, Callable, Sequence, TypeVar

from pymongo.client_session import ClientSession

from .application_service import ApplicationService, Document
from .hooks import Hooks
from ..coercion.candidate_authorizer import authorize_candidate
from ..coercion.coerce_primitive import coerce_object_id, coerce_version
from ..db.db_operation import DbOperation
from ..db.session_manager import SessionManager
from ..schema.operation import Operation
from ..schema.schema import Schema
from ..utilities.errors import InvalidArgumentsError, BadRequestError, DocumentNotFoundError, MoreThanOneDocumentFoundError
from ..utilities.logger import logger

T = TypeVar("T")

# Errors a single item of a bulk operation may fail with without failing the others
ITEM_ERRORS = (BadRequestError, DocumentNotFoundError, MoreThanOneDocumentFoundError)


class ControllerService:
	""" Entry point for request handlers. Every operation first authorizes the client candidate for its Operation,
	then coerces it, then forwards it to the application service under the session orchestrator, with `before`/`after` hooks around the call.

	Use ControllerService.for_schema() to get one in CRUD-controller mode, where missing documents raise DocumentNotFoundError.
	"""

	def __init__(self, application_service: ApplicationService) -> None:
		if not isinstance(application_service, ApplicationService):
			raise InvalidArgumentsError(f"Expected an ApplicationService, but got {type(application_service).__name__}.")
		self.application_service = application_service

	@classmethod
	def for_schema(cls, schema: Schema, session_manager: SessionManager | None = None, persona: str | None = None) -> 'ControllerService':
		if session_manager is None:
			session_manager = SessionManager(schema.database.client)
		application_service = ApplicationService(
			DbOperation(schema),
			session_manager,
			raise_document_existence_errors=True,
			persona=persona
		)
		return cls(application_service)

	@property
	def schema(self) -> Schema:
		return self.application_service.schema

	@property
	def session_manager(self) -> SessionManager:
		return self.application_service.session_manager

	def read(
		self,
		query: dict[str, Any],
		options: dict[str, Any] | None = None,
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> dict[str, Any]:
		""" Returns {"documents": [...], "count": n}. The count ignores skip and limit, so it can drive pagination. """
		hooks = _check_hooks(hooks)
		query = hooks.on_query_built(self._authorize_and_coerce_query(query, hooks))
		options = hooks.on_options_built(dict(options or {}))

		def read_documents(session: ClientSession | None) -> dict[str, Any]:
			hooks.on_before_persist(query, options, session)
			documents = self.application_service.read(query, options, session, hooks.for_inner_call())
			count = self.application_service.count(query, {"session": session}, hooks.for_inner_call())
			return hooks.on_after_persist({"documents": documents, "count": count}, session)

		return self._exec(read_documents, session, hooks.is_session_enabled)

	def search(
		self,
		value: str,
		query: dict[str, Any],
		search_fields: Sequence[str],
		options: dict[str, Any] | None = None,
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> dict[str, Any]:
		""" Like read(), but also requires `value` to appear (case-insensitively) in at least one of `search_fields`. """
		if not isinstance(value, str):
			raise BadRequestError(f"The search value must be a string, but got {type(value).__name__}.")
		if isinstance(search_fields, str) or not search_fields:
			raise InvalidArgumentsError("search_fields must be a non-empty sequence of field names.")
		for search_field in search_fields:
			if self.schema.root.resolve(search_field) is None:
				raise InvalidArgumentsError(f"Search field '{search_field}' is not defined in collection '{self.schema.collection_name}'.")

		hooks = _check_hooks(hooks)
		query = self.application_service.adapt_query(self._authorize_and_coerce_query(query, hooks))
		conditions = [{search_field: {"$regex": re.escape(value), "$options": "i"}} for search_field in search_fields]
		if "$or" in query:
			query["$and"] = [*query.get("$and", []), {"$or": conditions}]
		else:
			query["$or"] = conditions
		query = hooks.on_query_built(query)
		options = hooks.on_options_built(dict(options or {}))

		db_operation = self.application_service.db_operation

		def search_documents(session: ClientSession | None) -> dict[str, Any]:
			hooks.on_before_persist(query, options, session)
			documents = [self.application_service._redact(document) for document in db_operation.read(query, {**options, "session": session})]
			count = db_operation.count(query, {"session": session})
			return hooks.on_after_persist({"documents": documents, "count": count}, session)

		return self._exec(search_documents, session, hooks.is_session_enabled)

	def read_one_by_id(self, _id: Any, session: ClientSession | None = None, hooks: Hooks | None = None) -> Document | None:
		hooks = _check_hooks(hooks)
		_id = coerce_object_id(_id)

		def read_document(session: ClientSession | None) -> Document | None:
			hooks.on_before_persist(_id, session)
			document = self.application_service.read_one_by_id(_id, None, session, hooks.for_inner_call())
			return hooks.on_after_persist(document, session)

		return self._exec(read_document, session, hooks.is_session_enabled)

	def create_one(self, fields: dict[str, Any], session: ClientSession | None = None, hooks: Hooks | None = None) -> Document:
		hooks = _check_hooks(hooks)
		fields = self._authorize_and_coerce_fields(hooks.on_candidate_built(fields), Operation.CREATE_ONE, hooks)

		def create_document(session: ClientSession | None) -> Document:
			hooks.on_before_persist(fields, session)
			document = self.application_service.create_one(fields, session, hooks.for_inner_call())
			return hooks.on_after_persist(document, session)

		return self._exec(create_document, session, hooks.is_session_enabled)

	def update_one_by_id_and_version(
		self,
		_id: Any,
		version: Any,
		fields: dict[str, Any],
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		hooks = _check_hooks(hooks)
		_id = coerce_object_id(_id)
		version = coerce_version(version)
		fields = self._authorize_and_coerce_fields(hooks.on_candidate_built(fields), Operation.UPDATE_ONE_BY_ID_AND_VERSION, hooks)

		def update_document(session: ClientSession | None) -> Document | None:
			hooks.on_before_persist(_id, version, fields, session)
			document = self.application_service.update_one_by_id_and_version(_id, version, fields, session, hooks.for_inner_call())
			return hooks.on_after_persist(document, session)

		return self._exec(update_document, session, hooks.is_session_enabled)

	def replace_one_by_id_and_version(
		self,
		_id: Any,
		version: Any,
		fields: dict[str, Any],
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		hooks = _check_hooks(hooks)
		_id = coerce_object_id(_id)
		version = coerce_version(version)
		fields = self._authorize_and_coerce_fields(hooks.on_candidate_built(fields), Operation.REPLACE_ONE_BY_ID_AND_VERSION, hooks)

		def replace_document(session: ClientSession | None) -> Document | None:
			hooks.on_before_persist(_id, version, fields, session)
			document = self.application_service.replace_one_by_id_and_version(_id, version, fields, session, hooks.for_inner_call())
			return hooks.on_after_persist(document, session)

		return self._exec(replace_document, session, hooks.is_session_enabled)

	def soft_delete_one_by_id_and_version(self, _id: Any, version: Any, session: ClientSession | None = None, hooks: Hooks | None = None) -> Document | None:
		hooks = _check_hooks(hooks)
		_id = coerce_object_id(_id)
		version = coerce_version(version)

		def soft_delete_document(session: ClientSession | None) -> Document | None:
			hooks.on_before_persist(_id, version, session)
			document = self.application_service.soft_delete_one_by_id_and_version(_id, version, session, hooks.for_inner_call())
			return hooks.on_after_persist(document, session)

		return self._exec(soft_delete_document, session, hooks.is_session_enabled)

	def delete_one_by_id_and_version(self, _id: Any, version: Any, session: ClientSession | None = None, hooks: Hooks | None = None) -> Document | None:
		hooks = _check_hooks(hooks)
		_id = coerce_object_id(_id)
		version = coerce_version(version)

		def delete_document(session: ClientSession | None) -> Document | None:
			hooks.on_before_persist(_id, version, session)
			document = self.application_service.delete_one_by_id_and_version(_id, version, session, hooks.for_inner_call())
			return hooks.on_after_persist(document, session)

		return self._exec(delete_document, session, hooks.is_session_enabled)

	def soft_delete_many_by_id_and_version(
		self,
		documents: list[dict[str, Any]],
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> dict[str, list[Any]]:
		""" Soft deletes each {"_id", "version"} pair on its own, so one stale version does not stop the others.

		Every pair is validated before anything is deleted. Items failing with a client error are logged and reported in "errors",
		any other error propagates. Returns {"documents": [...deleted], "errors": [{"_id", "code", "message"}]}.
		"""
		hooks = _check_hooks(hooks)
		if not isinstance(documents, list):
			raise BadRequestError(f"Expected a list of {{_id, version}} objects, but got {type(documents).__name__}.")

		pairs: list[tuple[Any, int]] = []
		for document in documents:
			if not isinstance(document, dict):
				raise BadRequestError(f"Expected an {{_id, version}} object, but got {type(document).__name__}.")
			pairs.append((coerce_object_id(document.get("_id")), coerce_version(document.get("version"))))

		deleted_documents: list[Document | None] = []
		errors: list[dict[str, Any]] = []
		for _id, version in pairs:
			try:
				deleted_documents.append(self.soft_delete_one_by_id_and_version(_id, version, session, hooks))
			except ITEM_ERRORS as error:
				logger.warning(f"Soft delete of document {_id} in collection '{self.schema.collection_name}' failed: ({error.code}) {error.message}")
				errors.append({"_id": _id, **error.to_dict()})

		return {"documents": deleted_documents, "errors": errors}

	def _authorize_and_coerce_query(self, query: dict[str, Any] | None, hooks: Hooks) -> dict[str, Any]:
		query = {} if query is None else query
		skip = hooks.collect_skip()
		authorize_candidate(query, self.schema.root, Operation.READ, languages=self.schema.languages, skip=skip)
		return self.application_service.coerce_query(query, skip)

	def _authorize_and_coerce_fields(self, fields: Any, operation: Operation, hooks: Hooks) -> dict[str, Any]:
		if not isinstance(fields, dict):
			raise BadRequestError(f"Expected an object, but got {type(fields).__name__}.")
		skip = hooks.collect_skip()
		authorize_candidate(fields, self.schema.root, operation, languages=self.schema.languages, skip=skip)
		return self.application_service.coerce_document(fields, skip)

	def _exec(self, func: Callable[[ClientSession | None], T], external_session: ClientSession | None, is_enabled_by_hook: bool | None) -> T:
		internal_session = None
		if external_session is None:
			internal_session = self.session_manager.generate_session_for_controller(is_enabled_by_hook)
		session = external_session if external_session is not None else internal_session
		return self.session_manager.exec(lambda: func(session), external_session, internal_session)


def _check_hooks(hooks: Hooks | None) -> Hooks:
	if hooks is None:
		return Hooks()
	if not isinstance(hooks, Hooks):
		raise InvalidArgumentsError(f"hooks must be a Hooks instance, but got {type(hooks).__name__}.")
	return hooks

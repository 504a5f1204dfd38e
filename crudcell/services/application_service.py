from datetime import datetime, timezone
from typing import Any, Callable, Collection, TypeVar

from pymongo.client_session import ClientSession

from .hooks import Hooks
from ..coercion.candidate_coercer import coerce_candidate
from ..coercion.coerce_primitive import coerce_object_id, coerce_version
from ..coercion.remove_forbidden_properties import remove_forbidden_properties
from ..db.db_operation import DbOperation
from ..db.session_manager import SessionManager
from ..schema.common_properties import ID, VERSION, IS_SOFT_DELETED, CREATED_AT, UPDATED_AT, SOFT_DELETED_AT, IS_RECENT, ROOT
from ..schema.schema import Schema
from ..utilities.dot_notation import to_update
from ..utilities.errors import (
	InvalidArgumentsError,
	SetupError,
	DocumentNotFoundError,
	MoreThanOneDocumentFoundError,
	InvalidVersionError,
	DocumentModifiedError,
)

T = TypeVar("T")
Document = dict[str, Any]


class ApplicationService:
	""" The versioned document lifecycle of one collection.

	Every mutation is a compare-and-swap on `version`: the matched document is read inside the operation's session,
	checked for singularity and, for the *_by_id_and_version variants, against the version the caller last observed,
	then written back by its _id with `version` bumped by exactly one. Reads never return soft-deleted documents.

	On a history-enabled schema, updates and replacements insert a new recent version instead of writing in place,
	reads only see recent versions, and soft deletes and deletes act on the root and every version at once, returning None.

	Args:
		db_operation: Store adapter of the collection.
		session_manager: Decides and runs sessions.
		raise_document_existence_errors: When set (CRUD-controller mode), a missing document raises DocumentNotFoundError
			and a query matching more than one document for a mutation raises MoreThanOneDocumentFoundError.
		persona: When set, fields forbidden for this persona are removed from every returned document.
	"""

	def __init__(
		self,
		db_operation: DbOperation,
		session_manager: SessionManager,
		raise_document_existence_errors: bool = False,
		persona: str | None = None
	) -> None:
		if not isinstance(db_operation, DbOperation):
			raise InvalidArgumentsError(f"Expected a DbOperation, but got {type(db_operation).__name__}.")
		if not isinstance(session_manager, SessionManager):
			raise InvalidArgumentsError(f"Expected a SessionManager, but got {type(session_manager).__name__}.")

		self.db_operation = db_operation
		self.session_manager = session_manager
		self.raise_document_existence_errors = raise_document_existence_errors
		self.persona = persona

		self.root_db_operation: DbOperation | None = None
		if self.schema.is_history_enabled:
			self.root_db_operation = DbOperation(self.schema.root_schema)

	@property
	def schema(self) -> Schema:
		return self.db_operation.schema

	# Retrieval
	def count(self, query: dict[str, Any], options: dict[str, Any] | None = None, hooks: Hooks | None = None) -> int:
		hooks = _check_hooks(hooks)
		query = hooks.on_query_built(self.adapt_query(self.coerce_query(query, hooks.collect_skip())))
		options = hooks.on_options_built(_check_options(options))

		hooks.on_before_persist(query, options)
		count = self.db_operation.count(query, options)
		return hooks.on_after_persist(count)

	def read(
		self,
		query: dict[str, Any],
		options: dict[str, Any] | None = None,
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> list[Document]:
		hooks = _check_hooks(hooks)
		query = hooks.on_query_built(self.adapt_query(self.coerce_query(query, hooks.collect_skip())))
		options = hooks.on_options_built(_check_options(options))

		def read_documents(session: ClientSession | None) -> list[Document]:
			hooks.on_before_persist(query, options, session)
			documents = self.db_operation.read(query, {**options, "session": session})
			return hooks.on_after_persist(documents, session)

		documents = self._exec(read_documents, session, hooks.is_session_enabled)
		return [self._redact(document) for document in documents]

	def read_one(
		self,
		query: dict[str, Any],
		options: dict[str, Any] | None = None,
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		""" Returns the first matching document, or None. Raises DocumentNotFoundError instead of returning None when existence errors are on. """
		return self._redact(self._read_one(query, options, session, _check_hooks(hooks)))

	def read_one_by_id(
		self,
		_id: Any,
		options: dict[str, Any] | None = None,
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		return self.read_one({ID: coerce_object_id(_id)}, options, session, hooks)

	def read_one_by_id_and_version(
		self,
		_id: Any,
		version: Any,
		options: dict[str, Any] | None = None,
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		""" Reads a document and raises a version conflict unless it still has the version the caller holds. """
		_id = coerce_object_id(_id)
		version = coerce_version(version)

		document = self._read_one({ID: _id}, options, session, _check_hooks(hooks))
		if document is not None:
			self._check_version(document[VERSION], version)
		return self._redact(document)

	# Retrieval of the recent version, history-enabled schemas only
	def read_recent_one(
		self,
		query: dict[str, Any],
		options: dict[str, Any] | None = None,
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		self._check_history_enabled()
		return self.read_one(query, options, session, hooks)

	def read_recent_one_by_id(
		self,
		_id: Any,
		options: dict[str, Any] | None = None,
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		self._check_history_enabled()
		return self.read_one_by_id(_id, options, session, hooks)

	def read_recent_one_by_id_and_version(
		self,
		_id: Any,
		version: Any,
		options: dict[str, Any] | None = None,
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		self._check_history_enabled()
		return self.read_one_by_id_and_version(_id, version, options, session, hooks)

	# Creation
	def create_one(self, document_candidate: dict[str, Any], session: ClientSession | None = None, hooks: Hooks | None = None) -> Document:
		""" Persists a new document at version 0. """
		hooks = _check_hooks(hooks)
		document_candidate = hooks.on_candidate_built(self.coerce_document(document_candidate, hooks.collect_skip()))

		def create_document(session: ClientSession | None) -> Document:
			candidate = {
				**document_candidate,
				VERSION: 0,
				IS_SOFT_DELETED: False,
				CREATED_AT: _now()
			}
			if self.schema.is_history_enabled:
				root_document = self.root_db_operation.create_one({VERSION: 0, IS_SOFT_DELETED: False, CREATED_AT: _now()}, {"session": session})
				candidate[ROOT] = root_document[ID]
				candidate[IS_RECENT] = True
			hooks.on_before_persist(candidate, session)
			document = self.db_operation.create_one(candidate, {"session": session})
			return hooks.on_after_persist(document, session)

		return self._redact(self._exec(create_document, session, hooks.is_session_enabled, is_forced=self.schema.is_history_enabled))

	# Modification
	def update_one(
		self,
		query: dict[str, Any],
		document_candidate: dict[str, Any],
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		""" Read-modify-write of the single document matching the query. Fields sent as None are removed from the document. """
		return self._redact(self._update_one(query, document_candidate, session, _check_hooks(hooks)))

	def update_one_by_id_and_version(
		self,
		_id: Any,
		version: Any,
		document_candidate: dict[str, Any],
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		""" Compare-and-swap update. The matched document must still have the version the caller holds, otherwise a version
		conflict is raised before anything is written, so a stale version is never persisted, whatever session the call runs in. """
		_id = coerce_object_id(_id)
		version = coerce_version(version)
		return self._redact(self._update_one({ID: _id}, document_candidate, session, _check_hooks(hooks), version))

	def replace_one(
		self,
		query: dict[str, Any],
		document_candidate: dict[str, Any],
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		""" Replaces the whole body of the single document matching the query. _id and createdAt are kept, isSoftDeleted is reset. """
		return self._redact(self._replace_one(query, document_candidate, session, _check_hooks(hooks)))

	def replace_one_by_id_and_version(
		self,
		_id: Any,
		version: Any,
		document_candidate: dict[str, Any],
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		_id = coerce_object_id(_id)
		version = coerce_version(version)
		return self._redact(self._replace_one({ID: _id}, document_candidate, session, _check_hooks(hooks), version))

	# Deletion
	def soft_delete_one(self, query: dict[str, Any], session: ClientSession | None = None, hooks: Hooks | None = None) -> Document | None:
		""" Marks the single matching document as soft deleted through the update path, so it bumps the version like any update. """
		return self._redact(self._soft_delete_one(query, session, _check_hooks(hooks)))

	def soft_delete_one_by_id_and_version(
		self,
		_id: Any,
		version: Any,
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		_id = coerce_object_id(_id)
		version = coerce_version(version)
		return self._redact(self._soft_delete_one({ID: _id}, session, _check_hooks(hooks), version))

	def delete_one(self, query: dict[str, Any], session: ClientSession | None = None, hooks: Hooks | None = None) -> Document | None:
		""" Physically removes the single matching document and returns it. """
		return self._redact(self._delete_one(query, session, _check_hooks(hooks)))

	def delete_one_by_id_and_version(
		self,
		_id: Any,
		version: Any,
		session: ClientSession | None = None,
		hooks: Hooks | None = None
	) -> Document | None:
		""" Deleting does not bump the version, so the deleted document's own version must equal the one the caller holds. """
		_id = coerce_object_id(_id)
		version = coerce_version(version)
		return self._redact(self._delete_one({ID: _id}, session, _check_hooks(hooks), version))

	# Candidates and queries
	def coerce_query(self, query: dict[str, Any], skip: Collection[str] = ()) -> dict[str, Any]:
		if not isinstance(query, dict):
			raise InvalidArgumentsError(f"query must be a dict, but got {type(query).__name__}.")
		return coerce_candidate(query, self.schema.root, languages=self.schema.languages, skip=self._skipped_fields(skip), is_query=True)

	def coerce_document(self, document_candidate: dict[str, Any], skip: Collection[str] = ()) -> dict[str, Any]:
		if not isinstance(document_candidate, dict):
			raise InvalidArgumentsError(f"document_candidate must be a dict, but got {type(document_candidate).__name__}.")
		return coerce_candidate(document_candidate, self.schema.root, languages=self.schema.languages, skip=self._skipped_fields(skip))

	def adapt_query(self, query: dict[str, Any]) -> dict[str, Any]:
		""" Excludes soft-deleted documents, and previous versions on history-enabled schemas.
		Wrapped queries ({"$query": ...}) get the filter inside the wrapper. """
		if "$query" in query:
			if not query["$query"]:
				query["$query"] = {}
			filter = query["$query"]
		else:
			filter = query

		filter[IS_SOFT_DELETED] = False
		if self.schema.is_history_enabled:
			filter[IS_RECENT] = True
		return query

	# Internals, returning unredacted documents
	def _read_one(self, query: dict[str, Any], options: dict[str, Any] | None, session: ClientSession | None, hooks: Hooks) -> Document | None:
		query = hooks.on_query_built(self.adapt_query(self.coerce_query(query, hooks.collect_skip())))
		options = hooks.on_options_built(_check_options(options))

		def read_document(session: ClientSession | None) -> Document | None:
			hooks.on_before_persist(query, options, session)
			document = self.db_operation.read_one(query, {**options, "session": session})
			return hooks.on_after_persist(document, session)

		document = self._exec(read_document, session, hooks.is_session_enabled)
		if document is None and self._is_raising_existence_errors(hooks):
			raise DocumentNotFoundError()
		return document

	def _find_match(self, query: dict[str, Any], session: ClientSession | None, hooks: Hooks, version: int | None) -> Document | None:
		""" Reads the documents a mutation would hit and enforces that there is exactly one of them.
		When the caller holds a version, the match must still carry it; the check happens before any write. """
		documents = self.db_operation.read(query, {"session": session})
		self._check_document_singularity(documents, hooks)
		if not documents:
			return None
		if version is not None:
			self._check_version(documents[0][VERSION], version)
		return documents[0]

	def _update_one(
		self,
		query: dict[str, Any],
		document_candidate: dict[str, Any],
		session: ClientSession | None,
		hooks: Hooks,
		version: int | None = None
	) -> Document | None:
		query = hooks.on_query_built(self.adapt_query(self.coerce_query(query, hooks.collect_skip())))
		document_candidate = hooks.on_candidate_built(self.coerce_document(document_candidate, hooks.collect_skip()))

		def update_document(session: ClientSession | None) -> Document | None:
			document = self._find_match(query, session, hooks, version)
			if document is None:
				return None

			if self.schema.is_history_enabled:
				# The previous version stays as it was, apart from losing its recent mark
				self.db_operation.update_one_by_id(document[ID], {"$set": {IS_RECENT: False, UPDATED_AT: _now()}}, {"session": session})
				new_version = {
					**{field_name: value for field_name, value in document.items() if field_name not in (ID, UPDATED_AT)},
					**document_candidate,
					VERSION: document[VERSION] + 1,
					CREATED_AT: _now(),
					IS_RECENT: True
				}
				new_version = {field_name: value for field_name, value in new_version.items() if value is not None}
				hooks.on_before_persist(query, document, new_version, session)
				created_document = self.db_operation.create_one(new_version, {"session": session})
				return hooks.on_after_persist(created_document, session)

			candidate = {
				**document_candidate,
				VERSION: document[VERSION] + 1,
				UPDATED_AT: _now()
			}
			hooks.on_before_persist(query, document, candidate, session)
			# Written by the matched _id, so a second document matching the query can never be hit
			updated_document = self.db_operation.update_one_by_id(document[ID], to_update(candidate), {"session": session})
			return hooks.on_after_persist(updated_document, session)

		return self._exec(update_document, session, hooks.is_session_enabled, is_forced=True)

	def _replace_one(
		self,
		query: dict[str, Any],
		document_candidate: dict[str, Any],
		session: ClientSession | None,
		hooks: Hooks,
		version: int | None = None
	) -> Document | None:
		query = hooks.on_query_built(self.adapt_query(self.coerce_query(query, hooks.collect_skip())))
		document_candidate = hooks.on_candidate_built(self.coerce_document(document_candidate, hooks.collect_skip()))

		def replace_document(session: ClientSession | None) -> Document | None:
			document = self._find_match(query, session, hooks, version)
			if document is None:
				return None

			body = {field_name: value for field_name, value in document_candidate.items() if value is not None}
			if self.schema.is_history_enabled:
				self.db_operation.update_one_by_id(document[ID], {"$set": {IS_RECENT: False, UPDATED_AT: _now()}}, {"session": session})
				new_version = {
					**body,
					ROOT: document[ROOT],
					VERSION: document[VERSION] + 1,
					IS_SOFT_DELETED: False,
					CREATED_AT: _now(),
					IS_RECENT: True
				}
				hooks.on_before_persist(query, document, new_version, session)
				created_document = self.db_operation.create_one(new_version, {"session": session})
				return hooks.on_after_persist(created_document, session)

			replacement = {
				**body,
				ID: document[ID],
				VERSION: document[VERSION] + 1,
				IS_SOFT_DELETED: False,
				CREATED_AT: document.get(CREATED_AT, _now()),
				UPDATED_AT: _now()
			}
			hooks.on_before_persist(query, document, replacement, session)
			replaced_document = self.db_operation.replace_one_by_id(document[ID], replacement, {"session": session})
			return hooks.on_after_persist(replaced_document, session)

		return self._exec(replace_document, session, hooks.is_session_enabled, is_forced=True)

	def _soft_delete_one(self, query: dict[str, Any], session: ClientSession | None, hooks: Hooks, version: int | None = None) -> Document | None:
		query = hooks.on_query_built(self.adapt_query(self.coerce_query(query, hooks.collect_skip())))

		def soft_delete_document(session: ClientSession | None) -> Document | None:
			document = self._find_match(query, session, hooks, version)
			if document is None:
				return None

			now = _now()
			if self.schema.is_history_enabled:
				# The root and every version of the document are marked, and nothing is returned
				hooks.on_before_persist(query, document, session)
				self.root_db_operation.update_one_by_id(
					document[ROOT],
					{"$set": {IS_SOFT_DELETED: True, SOFT_DELETED_AT: now}, "$inc": {VERSION: 1}},
					{"session": session}
				)
				self.db_operation.update_many({ROOT: document[ROOT]}, {"$set": {IS_SOFT_DELETED: True, SOFT_DELETED_AT: now}}, {"session": session})
				return hooks.on_after_persist(None, session)

			candidate = {
				IS_SOFT_DELETED: True,
				SOFT_DELETED_AT: now,
				VERSION: document[VERSION] + 1,
				UPDATED_AT: now
			}
			hooks.on_before_persist(query, document, session)
			updated_document = self.db_operation.update_one_by_id(document[ID], to_update(candidate), {"session": session})
			return hooks.on_after_persist(updated_document, session)

		return self._exec(soft_delete_document, session, hooks.is_session_enabled, is_forced=True)

	def _delete_one(self, query: dict[str, Any], session: ClientSession | None, hooks: Hooks, version: int | None = None) -> Document | None:
		query = hooks.on_query_built(self.adapt_query(self.coerce_query(query, hooks.collect_skip())))

		def delete_document(session: ClientSession | None) -> Document | None:
			document = self._find_match(query, session, hooks, version)
			if document is None:
				return None

			hooks.on_before_persist(query, document, session)
			if self.schema.is_history_enabled:
				self.root_db_operation.delete_one_by_id(document[ROOT], {"session": session})
				self.db_operation.delete_many({ROOT: document[ROOT]}, {"session": session})
				return hooks.on_after_persist(None, session)

			deleted_document = self.db_operation.delete_one_by_id(document[ID], {"session": session})
			return hooks.on_after_persist(deleted_document, session)

		return self._exec(delete_document, session, hooks.is_session_enabled, is_forced=True)

	def _exec(
		self,
		func: Callable[[ClientSession | None], T],
		external_session: ClientSession | None,
		is_enabled_by_hook: bool | None,
		is_forced: bool = False
	) -> T:
		session, internal_session = self.session_manager.generate_session(external_session, is_enabled_by_hook, is_forced)
		return self.session_manager.exec(lambda: func(session), external_session, internal_session)

	def _check_history_enabled(self) -> None:
		if not self.schema.is_history_enabled:
			raise SetupError(f"History is not enabled for collection '{self.schema.collection_name}'.")

	def _check_version(self, document_version: int, version: int) -> None:
		if document_version < version:
			raise InvalidVersionError(document_version, version)
		elif document_version > version:
			raise DocumentModifiedError(document_version, version)

	def _check_document_singularity(self, documents: list[Document], hooks: Hooks) -> None:
		if not self._is_raising_existence_errors(hooks):
			return
		if len(documents) == 0:
			raise DocumentNotFoundError()
		if len(documents) > 1:
			raise MoreThanOneDocumentFoundError()

	def _is_raising_existence_errors(self, hooks: Hooks) -> bool:
		# A hook setting overrides the service's own
		if hooks.raise_document_existence_errors is not None:
			return hooks.raise_document_existence_errors
		return self.raise_document_existence_errors

	def _redact(self, document: T) -> T:
		if self.persona is None or not isinstance(document, dict):
			return document
		remove_forbidden_properties(document, self.schema.root, self.persona)
		return document

	def _skipped_fields(self, skip: Collection[str]) -> tuple[str, ...]:
		""" Keys the caller asked to let through, plus _id, which exists on every document even when the schema does not define it. """
		return (*skip, ID) if ID not in self.schema.root.properties else tuple(skip)


def _check_hooks(hooks: Hooks | None) -> Hooks:
	if hooks is None:
		return Hooks()
	if not isinstance(hooks, Hooks):
		raise InvalidArgumentsError(f"hooks must be a Hooks instance, but got {type(hooks).__name__}.")
	return hooks

def _check_options(options: dict[str, Any] | None) -> dict[str, Any]:
	if options is None:
		return {}
	if not isinstance(options, dict):
		raise InvalidArgumentsError(f"options must be a dict, but got {type(options).__name__}.")
	return dict(options)

def _now() -> datetime:
	return datetime.now(timezone.utc)

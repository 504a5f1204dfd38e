import time
from typing import Any, Mapping

from pymongo import ReturnDocument
from pymongo.collection import Collection

from ..schema.schema import Schema
from ..utilities.errors import InvalidArgumentsError
from ..utilities.logger import logger

READ_OPTIONS = ("session", "sort", "skip", "limit", "projection")
COUNT_OPTIONS = ("session", "skip", "limit")
MODIFY_OPTIONS = ("session", "sort", "projection")


class DbOperation:
	""" Uniform operation set over the physical collection of a schema. No business logic lives here.

	Every operation takes an optional `options` dict. Only the keys an operation understands are forwarded to pymongo:
		session: ClientSession the call participates in.
		sort, skip, limit, projection: as in pymongo's find().
		return_document: ReturnDocument.BEFORE or ReturnDocument.AFTER (the default) for find-and-modify calls.
	"""

	def __init__(self, schema: Schema) -> None:
		if not isinstance(schema, Schema):
			raise InvalidArgumentsError(f"Expected a Schema, but got {type(schema).__name__}.")
		self.schema = schema

	def get_native_ops(self) -> Collection:
		""" The pymongo collection, for anything this class does not cover. """
		return self.schema.collection

	# Retrieval
	def count(self, query: dict[str, Any], options: Mapping[str, Any] | None = None) -> int:
		query, options = _unwrap_query(query, options)
		start_time = time.time()
		count = self.schema.collection.count_documents(query, **_pick(options, COUNT_OPTIONS))
		self._log_usage(f"Counted {count} documents", query, start_time)
		return count

	def aggregate(self, pipeline: list[dict[str, Any]], options: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
		if not isinstance(pipeline, list) or not all(isinstance(stage, dict) for stage in pipeline):
			raise InvalidArgumentsError("pipeline must be a list of stage dicts.")
		start_time = time.time()
		documents = list(self.schema.collection.aggregate(pipeline, **_pick(options, ("session",))))
		self._log_usage(f"Aggregated {len(documents)} documents", pipeline, start_time)
		return documents

	def read(self, query: dict[str, Any], options: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
		query, options = _unwrap_query(query, options)
		start_time = time.time()
		documents = list(self.schema.collection.find(query, **_pick(options, READ_OPTIONS)))
		self._log_usage(f"Retrieved {len(documents)} documents", query, start_time)
		return documents

	def read_one(self, query: dict[str, Any], options: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
		query, options = _unwrap_query(query, options)
		start_time = time.time()
		document = self.schema.collection.find_one(query, **_pick(options, READ_OPTIONS))
		self._log_usage("Retrieved document", query, start_time)
		return document

	def read_one_by_id(self, _id: Any, options: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
		return self.read_one({"_id": _id}, options)

	# Creation
	def create_one(self, document: dict[str, Any], options: Mapping[str, Any] | None = None) -> dict[str, Any]:
		""" Inserts the document and reads it back under the same session. """
		_check_document(document)
		start_time = time.time()
		session_options = _pick(options, ("session",))
		result = self.schema.collection.insert_one(document, **session_options)
		inserted_document = self.schema.collection.find_one({"_id": result.inserted_id}, **session_options)
		if inserted_document is None:
			raise InvalidArgumentsError(f"Document {result.inserted_id} could not be read back after its insertion.")
		self._log_usage("Created document", {"_id": result.inserted_id}, start_time)
		return inserted_document

	# Modification
	def update_one(self, query: dict[str, Any], update: dict[str, Any], options: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
		""" Find a single document and update it, returning the document after the update unless asked otherwise. """
		query, options = _unwrap_query(query, options)
		_check_update(update)
		start_time = time.time()
		document = self.schema.collection.find_one_and_update(
			query,
			update,
			return_document=_return_document(options),
			**_pick(options, MODIFY_OPTIONS)
		)
		self._log_usage("Updated document", query, start_time)
		return document

	def update_one_by_id(self, _id: Any, update: dict[str, Any], options: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
		return self.update_one({"_id": _id}, update, options)

	def replace_one(self, query: dict[str, Any], replacement: dict[str, Any], options: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
		""" Atomically replace a single document matching the query. """
		query, options = _unwrap_query(query, options)
		_check_document(replacement)
		start_time = time.time()
		document = self.schema.collection.find_one_and_replace(
			query,
			replacement,
			return_document=_return_document(options),
			**_pick(options, MODIFY_OPTIONS)
		)
		self._log_usage("Replaced document", query, start_time)
		return document

	def replace_one_by_id(self, _id: Any, replacement: dict[str, Any], options: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
		return self.replace_one({"_id": _id}, replacement, options)

	def update_many(self, query: dict[str, Any], update: dict[str, Any], options: Mapping[str, Any] | None = None) -> int:
		""" Updates every matching document and returns how many were modified. """
		query, options = _unwrap_query(query, options)
		_check_update(update)
		start_time = time.time()
		result = self.schema.collection.update_many(query, update, **_pick(options, ("session",)))
		self._log_usage("Updated documents", query, start_time)
		return result.modified_count

	# Deletion
	def delete_one(self, query: dict[str, Any], options: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
		""" Deletes a single document and returns it. """
		query, options = _unwrap_query(query, options)
		start_time = time.time()
		document = self.schema.collection.find_one_and_delete(query, **_pick(options, MODIFY_OPTIONS))
		self._log_usage("Deleted document", query, start_time)
		return document

	def delete_one_by_id(self, _id: Any, options: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
		return self.delete_one({"_id": _id}, options)

	def delete_many(self, query: dict[str, Any], options: Mapping[str, Any] | None = None) -> int:
		query, options = _unwrap_query(query, options)
		start_time = time.time()
		result = self.schema.collection.delete_many(query, **_pick(options, ("session",)))
		self._log_usage("Deleted documents", query, start_time)
		return result.deleted_count

	def _log_usage(self, action: str, query: Any, start_time: float) -> None:
		logger.debug(f"Database Usage Logging: {action} in collection '{self.schema.collection_name}' for query: {query} in {(time.time() - start_time):.3f} seconds")


def _pick(options: Mapping[str, Any] | None, keys: tuple[str, ...]) -> dict[str, Any]:
	if options is None:
		return {}
	if not isinstance(options, Mapping):
		raise InvalidArgumentsError(f"options must be a dict, but got {type(options).__name__}.")

	picked = {key: options[key] for key in keys if options.get(key) is not None}
	if isinstance(picked.get("sort"), Mapping):
		picked["sort"] = list(picked["sort"].items())
	return picked

def _return_document(options: Mapping[str, Any] | None) -> bool:
	if options is None or options.get("return_document") is None:
		return ReturnDocument.AFTER
	return_document = options["return_document"]
	if return_document not in (ReturnDocument.BEFORE, ReturnDocument.AFTER):
		raise InvalidArgumentsError("return_document must be ReturnDocument.BEFORE or ReturnDocument.AFTER.")
	return return_document

def _unwrap_query(query: Any, options: Mapping[str, Any] | None) -> tuple[dict[str, Any], Mapping[str, Any] | None]:
	""" Wrapped queries ({"$query": ..., "$orderby": ...}) are split into a filter and a sort. """
	_check_query(query)
	if "$query" not in query:
		return query, options
	_check_query(query["$query"])
	unwrapped_options = dict(options or {})
	if "$orderby" in query:
		unwrapped_options.setdefault("sort", query["$orderby"])
	return query["$query"], unwrapped_options

def _check_query(query: Any) -> None:
	if not isinstance(query, dict):
		raise InvalidArgumentsError(f"query must be a dict, but got {type(query).__name__}.")

def _check_document(document: Any) -> None:
	if not isinstance(document, dict):
		raise InvalidArgumentsError(f"document must be a dict, but got {type(document).__name__}.")
	if any(isinstance(key, str) and key.startswith("$") for key in document):
		raise InvalidArgumentsError("A document cannot contain update operators.")

def _check_update(update: Any) -> None:
	if not isinstance(update, dict) or not update:
		raise InvalidArgumentsError("update must be a non-empty dict of update operators.")
	if not all(isinstance(key, str) and key.startswith("$") for key in update):
		raise InvalidArgumentsError("update must only contain update operators such as $set and $unset.")

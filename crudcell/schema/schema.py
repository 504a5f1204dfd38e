from copy import deepcopy
from typing import Any, Sequence

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import CollectionInvalid, OperationFailure

from .bson_type import BsonType
from .common_properties import IS_SOFT_DELETED, IS_RECENT, ROOT, VERSION, add_common_properties, add_history_properties
from .field_node import ObjectNode
from .identify_bson_type import identify_bson_type
from .parse_definition import parse_definition
from ..db.mongo_db import create_mongo_client, get_default_db_name
from ..utilities.errors import SetupError
from ..utilities.logger import logger

NAMESPACE_EXISTS = 48
FAILED_TO_PARSE = 9


class Schema:
	""" A collection's framework definition, its field-type tree and the physical collection it is bound to.
	Read-only after construction. Use define_schema() to build one.

	With is_history_enabled, documents are never changed in place: each change inserts a new version document, and every
	version of a document points through `_root` to one root document kept in root_schema's collection. """

	def __init__(
		self,
		client: MongoClient,
		db_name: str,
		collection_name: str,
		definition: dict[str, Any],
		languages: Sequence[str] = (),
		is_add_common_properties: bool = True,
		is_history_enabled: bool = False,
		is_validation_enabled: bool = True
	) -> None:
		if not isinstance(db_name, str) or not db_name:
			raise SetupError(f"db_name must be a non-empty string, but got {db_name!r}.")
		if not isinstance(collection_name, str) or not collection_name:
			raise SetupError(f"collection_name must be a non-empty string, but got {collection_name!r}.")
		if not isinstance(definition, dict):
			raise SetupError(f"The definition of collection '{collection_name}' must be a dict.")
		if isinstance(languages, str) or not all(isinstance(language, str) for language in languages):
			raise SetupError("languages must be a sequence of language codes.")

		self.db_name = db_name
		self.collection_name = collection_name
		self.languages: tuple[str, ...] = tuple(languages)
		self.is_add_common_properties = is_add_common_properties
		self.is_history_enabled = is_history_enabled
		self.is_validation_enabled = is_validation_enabled

		self.definition: dict[str, Any] = add_common_properties(definition) if is_add_common_properties else deepcopy(definition)
		if is_history_enabled:
			self.definition = add_history_properties(self.definition, is_add_common_properties)

		root = parse_definition(self.definition, self.languages)
		if not isinstance(root, ObjectNode) or root.is_multilingual:
			raise SetupError(f"The root definition of collection '{collection_name}' must have bsonType 'object'.")
		self.root: ObjectNode = root

		self.database: Database = client[db_name]
		self.collection: Collection = self.database[collection_name]

		# One root document per versioned document, e.g. "books" keeps its roots in "rootBooks"
		self.root_schema: Schema | None = None
		if is_history_enabled:
			self.root_schema = Schema(
				client,
				db_name,
				f"root{collection_name[0].upper()}{collection_name[1:]}",
				{"bsonType": BsonType.OBJECT.value, "additionalProperties": False},
				is_add_common_properties=True
			)

	def __repr__(self) -> str:
		return f"Schema({self.db_name}.{self.collection_name})"

	def generate_json_schema(self) -> dict[str, Any]:
		""" Derives MongoDB's $jsonSchema from the definition by stripping the framework keys and expanding multilingual fields. """
		return _to_json_schema(deepcopy(self.definition), self.languages)

	def enforce(self) -> None:
		""" Installs the definition on the physical collection.
		Creates the collection, or modifies its validator when it already exists. Blocks until the store has answered. """
		validator = {"$jsonSchema": self.generate_json_schema()} if self.is_validation_enabled else {}
		validation_level = "moderate" if self.is_validation_enabled else "off"

		try:
			self.database.create_collection(self.collection_name, validator=validator, validationLevel=validation_level)
			logger.info(f"Created collection '{self.collection_name}' in database '{self.db_name}' with validation level '{validation_level}'")
		except CollectionInvalid:
			self._modify_collection(validator, validation_level)
		except OperationFailure as error:
			if error.code == NAMESPACE_EXISTS:
				self._modify_collection(validator, validation_level)
			else:
				self._handle_enforcement_failure(error)

		if self.is_add_common_properties:
			self.collection.create_index([(IS_SOFT_DELETED, 1)])
		if self.root_schema is not None:
			self.collection.create_index([(IS_RECENT, -1)])
			self.collection.create_index([(ROOT, 1), (VERSION, -1)], unique=True)
			self.root_schema.enforce()

	def _modify_collection(self, validator: dict[str, Any], validation_level: str) -> None:
		try:
			self.database.command("collMod", self.collection_name, validator=validator, validationLevel=validation_level)
		except OperationFailure as error:
			self._handle_enforcement_failure(error)
		logger.info(f"Updated validator of collection '{self.collection_name}' in database '{self.db_name}' with validation level '{validation_level}'")

	def _handle_enforcement_failure(self, error: OperationFailure) -> None:
		if error.code == FAILED_TO_PARSE:
			raise SetupError(f"MongoDB rejected the JSON schema of collection '{self.collection_name}': {error}") from error
		logger.error(f"MongoDB level error occurred while enforcing collection '{self.collection_name}': (CODE {error.code}) {error}")
		raise error


def define_schema(
	client: MongoClient | None,
	db_name: str | None,
	collection_name: str,
	definition: dict[str, Any],
	*,
	languages: Sequence[str] = (),
	is_add_common_properties: bool = True,
	is_history_enabled: bool = False,
	is_validation_enabled: bool = True,
	enforce: bool = True
) -> Schema:
	""" Builds a Schema and, when `enforce` is set, installs it on the store before returning,
	so no operation can reach the collection ahead of its validator.

	client defaults to the cached client from MONGO_URL, db_name to MONGO_DB_NAME.
	"""
	schema = Schema(
		client if client is not None else create_mongo_client(),
		db_name if db_name is not None else get_default_db_name(),
		collection_name,
		definition,
		languages=languages,
		is_add_common_properties=is_add_common_properties,
		is_history_enabled=is_history_enabled,
		is_validation_enabled=is_validation_enabled
	)
	if enforce:
		schema.enforce()
	return schema


def _to_json_schema(definition: dict[str, Any], languages: Sequence[str]) -> dict[str, Any]:
	is_multilingual = definition.pop("isMultilingual", False)
	definition.pop("forbiddenForPersonas", None)
	definition.pop("controller", None)

	bson_type = identify_bson_type(definition)
	if bson_type == BsonType.OBJECT:
		properties = definition.get("properties", {})
		for field_name, sub_definition in properties.items():
			properties[field_name] = _to_json_schema(sub_definition, languages)
	elif bson_type == BsonType.ARRAY and isinstance(definition.get("items"), dict):
		definition["items"] = _to_json_schema(definition["items"], languages)

	if is_multilingual:
		return {
			"bsonType": BsonType.OBJECT.value,
			"properties": {language: deepcopy(definition) for language in languages}
		}
	return definition

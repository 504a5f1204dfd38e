from copy import deepcopy
from typing import Any

from .bson_type import BsonType
from .field_node import FORBIDDEN_FOR_ALL_PERSONAS
from .operation import Operation, WRITE_OPERATIONS


ID = "_id"
VERSION = "version"
IS_SOFT_DELETED = "isSoftDeleted"
CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"
SOFT_DELETED_AT = "softDeletedAt"

_NOT_WRITABLE = {operation.value: False for operation in WRITE_OPERATIONS}
_NOT_USABLE = {operation.value: False for operation in Operation}
_FRAMEWORK_OWNED = {"forbiddenForPersonas": FORBIDDEN_FOR_ALL_PERSONAS, "controller": _NOT_USABLE}

COMMON_PROPERTIES: dict[str, dict[str, Any]] = {
	ID: {"bsonType": BsonType.OBJECT_ID.value, "controller": _NOT_WRITABLE},
	VERSION: {"bsonType": BsonType.INT.value, "controller": _NOT_WRITABLE},
	IS_SOFT_DELETED: {"bsonType": BsonType.BOOLEAN.value, **_FRAMEWORK_OWNED},
	CREATED_AT: {"bsonType": BsonType.DATE.value, **_FRAMEWORK_OWNED},
	UPDATED_AT: {"bsonType": BsonType.DATE.value, **_FRAMEWORK_OWNED},
	SOFT_DELETED_AT: {"bsonType": BsonType.DATE.value, **_FRAMEWORK_OWNED},
}
REQUIRED_COMMON_PROPERTIES = (ID, VERSION, IS_SOFT_DELETED, CREATED_AT)


def add_common_properties(definition: dict[str, Any]) -> dict[str, Any]:
	""" Returns a copy of a root definition with the framework-owned fields added, overriding any definition of the same name.
	`updatedAt` and `softDeletedAt` are not required since they only exist after the first update or soft delete. """
	definition = deepcopy(definition)
	properties = definition.setdefault("properties", {})
	for field_name, field_definition in COMMON_PROPERTIES.items():
		properties[field_name] = deepcopy(field_definition)

	required = definition.setdefault("required", [])
	for field_name in REQUIRED_COMMON_PROPERTIES:
		if field_name not in required:
			required.append(field_name)
	return definition


IS_RECENT = "isRecent"
ROOT = "_root"

HISTORY_PROPERTIES: dict[str, dict[str, Any]] = {
	IS_RECENT: {"bsonType": BsonType.BOOLEAN.value, **_FRAMEWORK_OWNED},
	ROOT: {"bsonType": BsonType.OBJECT_ID.value, **_FRAMEWORK_OWNED},
}
# Without the common properties, a versioned document still needs its identity, version and creation time
HISTORY_BASE_PROPERTIES = (ID, VERSION, CREATED_AT)


def add_history_properties(definition: dict[str, Any], is_add_common_properties: bool) -> dict[str, Any]:
	""" Returns a copy of a root definition with `isRecent` and `_root` added, which chain every version document to its root document. """
	definition = deepcopy(definition)
	properties = definition.setdefault("properties", {})
	required = definition.setdefault("required", [])

	history_properties = dict(HISTORY_PROPERTIES)
	if not is_add_common_properties:
		history_properties = {field_name: COMMON_PROPERTIES[field_name] for field_name in HISTORY_BASE_PROPERTIES} | history_properties

	for field_name, field_definition in history_properties.items():
		properties[field_name] = deepcopy(field_definition)
		if field_name not in required:
			required.append(field_name)
	return definition

from typing import Any

from .bson_type import BsonType
from ..utilities.ambiguous import AMBIGUOUS, Ambiguous
from ..utilities.errors import InvalidArgumentsError


def identify_bson_type(definition: dict[str, Any]) -> BsonType | Ambiguous:
	""" Identifies the single BSON type of a definition.

	Ex:
		{"bsonType": "int"} -> BsonType.INT
		{"bsonType": ["int", None]} -> BsonType.INT
		{"bsonType": ["int", "double"]} -> AMBIGUOUS
		{} -> AMBIGUOUS
	"""
	if not isinstance(definition, dict):
		raise InvalidArgumentsError(f"Expected a definition dict, but got {type(definition).__name__}.")

	bson_type = definition.get("bsonType")

	if isinstance(bson_type, str):
		return _to_bson_type(bson_type)

	if isinstance(bson_type, list):
		non_null_types = [t for t in bson_type if t is not None and t != "null"]
		if len(non_null_types) != 1:
			return AMBIGUOUS
		return _to_bson_type(non_null_types[0])

	return AMBIGUOUS

def _to_bson_type(alias: Any) -> BsonType | Ambiguous:
	try:
		return BsonType(alias)
	except ValueError:
		return AMBIGUOUS

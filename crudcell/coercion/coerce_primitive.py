import math
import re
from datetime import datetime
from decimal import Decimal
from typing import Any

from bson import ObjectId
from bson.decimal128 import Decimal128
from bson.errors import InvalidId

from ..schema.bson_type import BsonType
from ..schema.field_path import FieldPath
from ..utilities.errors import BadRequestError, InvalidArgumentsError

INT32_RANGE = (-2**31, 2**31 - 1)
INT64_RANGE = (-2**63, 2**63 - 1)
INTEGER_PATTERN = re.compile(r"[+-]?\d+", re.ASCII)


def coerce_primitive(value: Any, bson_type: BsonType, path: FieldPath = FieldPath()) -> Any:
	""" Converts an untyped leaf value into its store-native type. None stays None.
	Values that already have the native type are returned unchanged. """
	if value is None:
		return None

	if bson_type == BsonType.BOOLEAN:
		return coerce_boolean(value, path)

	elif bson_type == BsonType.INT:
		return coerce_integer(value, path, INT32_RANGE)

	elif bson_type == BsonType.LONG:
		return coerce_integer(value, path, INT64_RANGE)

	elif bson_type == BsonType.DOUBLE:
		return coerce_double(value, path)

	elif bson_type == BsonType.DECIMAL:
		return coerce_decimal(value, path)

	elif bson_type == BsonType.STRING:
		if not isinstance(value, str):
			raise _mismatch("a string", value, path)
		return value

	elif bson_type == BsonType.OBJECT_ID:
		return coerce_object_id(value, path)

	elif bson_type == BsonType.DATE:
		return coerce_date(value, path)

	else:
		raise InvalidArgumentsError(f"{bson_type} is not a primitive BSON type.")

def coerce_boolean(value: Any, path: FieldPath = FieldPath()) -> bool:
	if isinstance(value, bool):
		return value
	if value == "true":
		return True
	if value == "false":
		return False
	raise _mismatch("a boolean", value, path)

def coerce_integer(value: Any, path: FieldPath = FieldPath(), bounds: tuple[int, int] = INT64_RANGE) -> int:
	""" Accepts an int, a whole float or a numeric string. Int64 values are kept as they are. """
	if isinstance(value, bool):
		raise _mismatch("an integer", value, path)

	if isinstance(value, str):
		value = _parse_number(value, "an integer", path)

	if isinstance(value, float):
		if not math.isfinite(value) or not value.is_integer():
			raise _mismatch("an integer", value, path)
		value = int(value)

	if not isinstance(value, int):
		raise _mismatch("an integer", value, path)

	if not bounds[0] <= value <= bounds[1]:
		raise BadRequestError(f"Integer at {path.describe()} is out of range.")
	return value

def coerce_double(value: Any, path: FieldPath = FieldPath()) -> float:
	if isinstance(value, bool):
		raise _mismatch("a number", value, path)

	if isinstance(value, str):
		value = _parse_number(value, "a number", path)

	if not isinstance(value, (int, float)):
		raise _mismatch("a number", value, path)

	value = float(value)
	if not math.isfinite(value):
		raise _mismatch("a finite number", value, path)
	return value

def coerce_decimal(value: Any, path: FieldPath = FieldPath()) -> Decimal128:
	if isinstance(value, Decimal128):
		return value
	if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
		raise _mismatch("a decimal", value, path)

	if isinstance(value, str) and (not value.isascii() or "_" in value):
		raise _mismatch("a decimal", value, path)

	try:
		decimal = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
		if not decimal.is_finite():
			raise _mismatch("a finite decimal", value, path)
		return Decimal128(decimal)
	except ArithmeticError:
		# Decimal128 holds at most 34 significant digits
		raise _mismatch("a decimal with at most 34 digits", value, path) from None

def coerce_object_id(value: Any, path: FieldPath = FieldPath("_id")) -> ObjectId:
	""" Accepts an ObjectId or its 24-hex-character string form.
	The string has to survive the round-trip, so garbled input cannot turn into a different id. """
	if isinstance(value, ObjectId):
		return value
	if not isinstance(value, str):
		raise _mismatch("an ObjectId", value, path)

	try:
		object_id = ObjectId(value)
	except InvalidId:
		raise _mismatch("an ObjectId", value, path) from None
	if str(object_id) != value:
		raise _mismatch("an ObjectId", value, path)
	return object_id

def coerce_date(value: Any, path: FieldPath = FieldPath()) -> datetime:
	""" Accepts a datetime or an ISO-8601 string. """
	if isinstance(value, datetime):
		return value
	if not isinstance(value, str):
		raise _mismatch("a date", value, path)

	try:
		return datetime.fromisoformat(value)
	except ValueError:
		raise _mismatch("a date", value, path) from None

def coerce_version(value: Any) -> int:
	""" Versions are non-negative integers. Numeric strings are accepted since versions usually arrive in URLs. """
	path = FieldPath("version")
	if value is None:
		raise BadRequestError("A version is required.")
	version = coerce_integer(value, path)
	if version < 0:
		raise BadRequestError(f"version must be a non-negative integer, but got {version}.")
	return version

def _parse_number(value: str, expected: str, path: FieldPath) -> int | float:
	text = value.strip()
	# float() would also read digit group underscores and non-ASCII digits
	if not text.isascii() or "_" in text:
		raise _mismatch(expected, value, path)
	if INTEGER_PATTERN.fullmatch(text):
		return int(text)
	try:
		return float(text)
	except ValueError:
		raise _mismatch(expected, value, path) from None

def _mismatch(expected: str, value: Any, path: FieldPath) -> BadRequestError:
	return BadRequestError(f"Expected {expected} at {path.describe()}, but got {type(value).__name__} {value!r}.")

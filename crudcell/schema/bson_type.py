from enum import StrEnum


class BsonType(StrEnum):
	""" BSON type aliases usable as `bsonType` in a schema definition. See https://www.mongodb.com/docs/manual/reference/bson-types/ """
	BOOLEAN = "bool"
	INT = "int" # 32-bit integer number.
	LONG = "long" # 64-bit integer number.
	DOUBLE = "double" # 64-bit IEEE 754-2008 binary floating point number.
	DECIMAL = "decimal" # 128-bit decimal floating point number.
	STRING = "string"
	OBJECT_ID = "objectId"
	DATE = "date"
	OBJECT = "object"
	ARRAY = "array"

	@property
	def is_primitive(self) -> bool:
		return self not in (BsonType.OBJECT, BsonType.ARRAY)

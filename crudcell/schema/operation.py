from enum import StrEnum


class Operation(StrEnum):
	""" Controller operations a schema definition can allow or deny per field, via its `controller` map.
	The values are the keys expected inside `controller`. """
	READ = "read"
	READ_ONE_BY_ID = "readOneById"
	CREATE_ONE = "createOne"
	UPDATE_ONE_BY_ID_AND_VERSION = "updateOneByIdAndVersion"
	REPLACE_ONE_BY_ID_AND_VERSION = "replaceOneByIdAndVersion"

WRITE_OPERATIONS = (
	Operation.CREATE_ONE,
	Operation.UPDATE_ONE_BY_ID_AND_VERSION,
	Operation.REPLACE_ONE_BY_ID_AND_VERSION,
)

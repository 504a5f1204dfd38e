from bidict import bidict, ValueDuplicationError

from .schema import Schema
from ..utilities.errors import SetupError


class SchemaRegistry(bidict[str, Schema]):
	""" Collection name <-> Schema. Lets an application build all its schemas once and inject them where needed. """

	def add(self, schema: Schema) -> Schema:
		if schema.collection_name in self:
			raise SetupError(f"A schema for collection '{schema.collection_name}' is already registered.")
		try:
			self[schema.collection_name] = schema
		except ValueDuplicationError as error:
			raise SetupError(f"{schema!r} is already registered under collection '{self.inverse[schema]}'.") from error
		return schema

	def get_schema(self, collection_name: str) -> Schema:
		if collection_name not in self:
			raise SetupError(f"No schema is registered for collection '{collection_name}'.")
		return self[collection_name]

	def get_collection_name(self, schema: Schema) -> str:
		return self.inverse[schema]

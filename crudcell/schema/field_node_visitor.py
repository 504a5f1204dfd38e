from __future__ import annotations
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
	from .field_node import PrimitiveNode, ObjectNode, ArrayNode, AmbiguousNode


class FieldNodeVisitor:
	""" Walks a candidate in lockstep with a field-type tree. Subclasses implement one method per node kind.
	The coercer, the authorizer and the persona redactor are visitors. """

	def visit_primitive(self, node: PrimitiveNode, value: Any, *args: Any, **kwargs: Any) -> Any:
		raise NotImplementedError

	def visit_object(self, node: ObjectNode, value: Any, *args: Any, **kwargs: Any) -> Any:
		raise NotImplementedError

	def visit_array(self, node: ArrayNode, value: Any, *args: Any, **kwargs: Any) -> Any:
		raise NotImplementedError

	def visit_ambiguous(self, node: AmbiguousNode, value: Any, *args: Any, **kwargs: Any) -> Any:
		return value

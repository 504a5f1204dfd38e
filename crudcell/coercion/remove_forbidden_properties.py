from typing import Any

from ..schema.field_node import FieldNode, PrimitiveNode, ObjectNode, ArrayNode
from ..schema.field_node_visitor import FieldNodeVisitor


class ForbiddenPropertyRemover(FieldNodeVisitor):
	""" Removes, in place, every field of a stored document that the persona may not see. Fields unknown to the schema are left alone. """

	def __init__(self, persona: str) -> None:
		self.persona = persona

	def visit_primitive(self, node: PrimitiveNode, value: Any) -> None:
		return None

	def visit_object(self, node: ObjectNode, value: Any) -> None:
		if not isinstance(value, dict):
			return
		for field_name in list(value):
			sub_node = node.properties.get(field_name)
			if sub_node is None:
				continue
			if sub_node.is_forbidden_for(self.persona):
				del value[field_name]
			else:
				sub_node.accept(self, value[field_name])

	def visit_array(self, node: ArrayNode, value: Any) -> None:
		if not isinstance(value, list):
			return
		for element in value:
			node.items.accept(self, element)


def remove_forbidden_properties(document: dict[str, Any] | None, node: FieldNode, persona: str | None) -> dict[str, Any] | None:
	if document is None or persona is None:
		return document
	node.accept(ForbiddenPropertyRemover(persona), document)
	return document

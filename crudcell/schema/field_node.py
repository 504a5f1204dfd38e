from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Mapping, TYPE_CHECKING

from .bson_type import BsonType
from .operation import Operation

if TYPE_CHECKING:
	from .field_node_visitor import FieldNodeVisitor


FORBIDDEN_FOR_ALL_PERSONAS = "*"


@dataclass(frozen=True, kw_only=True)
class FieldNode:
	""" A node of a schema's field-type tree. Built once by parse_definition() and never mutated afterwards.

	Exactly one of the subclasses describes each field:
		PrimitiveNode: a single leaf BSON type.
		ObjectNode: nested `properties`.
		ArrayNode: elements described by `items`.
		AmbiguousNode: no single non-null type, values pass through untouched.
	"""
	controller: Mapping[Operation, bool] = field(default_factory=dict)
	""" Per-operation allow flags. An operation missing here is allowed. """

	forbidden_for_personas: tuple[str, ...] = ()
	""" Personas that never see this field in returned documents. Contains "*" when no persona may see it. """

	is_multilingual: bool = False

	def is_allowed_for(self, operation: Operation) -> bool:
		return self.controller.get(operation, True)

	def is_forbidden_for(self, persona: str) -> bool:
		return FORBIDDEN_FOR_ALL_PERSONAS in self.forbidden_for_personas or persona in self.forbidden_for_personas

	def accept(self, visitor: FieldNodeVisitor, value: Any, *args: Any, **kwargs: Any) -> Any:
		raise NotImplementedError


@dataclass(frozen=True, kw_only=True)
class PrimitiveNode(FieldNode):
	bson_type: BsonType

	def accept(self, visitor: FieldNodeVisitor, value: Any, *args: Any, **kwargs: Any) -> Any:
		return visitor.visit_primitive(self, value, *args, **kwargs)


@dataclass(frozen=True, kw_only=True)
class ObjectNode(FieldNode):
	properties: Mapping[str, FieldNode] = field(default_factory=dict)

	def accept(self, visitor: FieldNodeVisitor, value: Any, *args: Any, **kwargs: Any) -> Any:
		return visitor.visit_object(self, value, *args, **kwargs)

	def resolve(self, dotted_key: str) -> FieldNode | None:
		""" Finds the node a dot notation key points to, stepping into array items on the way. Returns None when the key is not in the tree.

		Ex: "name.en", "tags.0", "addresses.city"
		"""
		current: FieldNode = self
		for segment in dotted_key.split("."):
			if isinstance(current, ArrayNode):
				current = current.items
				if segment.isdigit():
					continue
			if isinstance(current, AmbiguousNode):
				return current
			if not isinstance(current, ObjectNode) or segment not in current.properties:
				return None
			current = current.properties[segment]
		return current


@dataclass(frozen=True, kw_only=True)
class ArrayNode(FieldNode):
	items: FieldNode

	def accept(self, visitor: FieldNodeVisitor, value: Any, *args: Any, **kwargs: Any) -> Any:
		return visitor.visit_array(self, value, *args, **kwargs)


@dataclass(frozen=True, kw_only=True)
class AmbiguousNode(FieldNode):
	def accept(self, visitor: FieldNodeVisitor, value: Any, *args: Any, **kwargs: Any) -> Any:
		return visitor.visit_ambiguous(self, value, *args, **kwargs)

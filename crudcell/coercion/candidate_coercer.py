from typing import Any, Collection, Sequence

from .coerce_primitive import coerce_primitive, coerce_boolean, coerce_integer
from .query_operators import LOGICAL_OPERATORS, QUERY_WRAPPER, LIST_OPERATORS, COMPARISON_OPERATORS, STRING_OPERATORS, is_operator
from ..schema.field_node import FieldNode, PrimitiveNode, ObjectNode, ArrayNode
from ..schema.field_node_visitor import FieldNodeVisitor
from ..schema.field_path import FieldPath
from ..utilities.errors import BadRequestError, LanguageError


class CandidateCoercer(FieldNodeVisitor):
	""" Converts an untyped candidate into store-native values by walking it in lockstep with a field-type tree.

	Unknown keys are rejected unless listed in `skip`, which only applies to the first level.
	With is_query set, dot notation keys, query operators and scalar matches against array fields are understood as well.
	"""

	def __init__(self, languages: Sequence[str] = (), skip: Collection[str] = (), is_query: bool = False) -> None:
		self.languages = tuple(languages)
		self.skip = frozenset(skip)
		self.is_query = is_query

	def visit_primitive(self, node: PrimitiveNode, value: Any, path: FieldPath) -> Any:
		if isinstance(value, dict) and self.is_query:
			return self._coerce_operators(node, value, path)
		return coerce_primitive(value, node.bson_type, path)

	def visit_object(self, node: ObjectNode, value: Any, path: FieldPath) -> Any:
		if value is None:
			return None
		if not isinstance(value, dict):
			raise BadRequestError(f"Expected an object at {path.describe()}, but got {type(value).__name__}.")

		coerced: dict[str, Any] = {}
		for key, sub_value in value.items():
			if is_operator(key):
				coerced[key] = self._coerce_object_operator(node, key, sub_value, path)
				continue

			sub_path = path.subfield(key)
			if path.is_root() and key in self.skip:
				coerced[key] = sub_value
				continue

			sub_node = self._find_property(node, key, sub_path)
			coerced[key] = sub_node.accept(self, sub_value, sub_path)
		return coerced

	def visit_array(self, node: ArrayNode, value: Any, path: FieldPath) -> Any:
		if value is None:
			return None
		if isinstance(value, list):
			return [node.items.accept(self, element, path.subidx(idx)) for idx, element in enumerate(value)]
		if not self.is_query:
			raise BadRequestError(f"Expected an array at {path.describe()}, but got {type(value).__name__}.")

		# A query may match a single element, or use operators on the array
		if isinstance(value, dict) and value and all(is_operator(key) for key in value):
			return self._coerce_operators(node, value, path)
		return node.items.accept(self, value, path)

	def _find_property(self, node: ObjectNode, key: str, path: FieldPath) -> FieldNode:
		if key in node.properties:
			return node.properties[key]
		if node.is_multilingual:
			raise LanguageError(f"Language '{key}' at {path.describe()} is not one of the configured languages: {', '.join(self.languages)}.")
		if self.is_query and "." in key:
			sub_node = node.resolve(key)
			if sub_node is not None:
				return sub_node
		raise BadRequestError(f"Unknown field {path.describe()}.")

	def _coerce_object_operator(self, node: ObjectNode, operator: str, operand: Any, path: FieldPath) -> Any:
		if not self.is_query:
			raise BadRequestError(f"Operator '{operator}' is not allowed in a document at {path.describe()}.")
		if operator in LOGICAL_OPERATORS:
			if not isinstance(operand, list):
				raise BadRequestError(f"'{operator}' at {path.describe()} expects a list of queries.")
			return [node.accept(self, clause, path) for clause in operand]
		if operator == QUERY_WRAPPER:
			return node.accept(self, operand, path)
		return self._coerce_operator(node, operator, operand, path)

	def _coerce_operators(self, node: FieldNode, operators: dict[str, Any], path: FieldPath) -> dict[str, Any]:
		coerced: dict[str, Any] = {}
		for operator, operand in operators.items():
			if not is_operator(operator):
				raise BadRequestError(f"Expected a value or query operators at {path.describe()}, but got key '{operator}'.")
			coerced[operator] = self._coerce_operator(node, operator, operand, path)
		return coerced

	def _coerce_operator(self, node: FieldNode, operator: str, operand: Any, path: FieldPath) -> Any:
		""" Coerces the operand of a single field-level query operator. """
		target = node.items if isinstance(node, ArrayNode) else node

		if operator in LIST_OPERATORS:
			if not isinstance(operand, list):
				raise BadRequestError(f"'{operator}' at {path.describe()} expects a list.")
			return [target.accept(self, element, path) for element in operand]

		elif operator in COMPARISON_OPERATORS:
			return target.accept(self, operand, path)

		elif operator in STRING_OPERATORS:
			if not isinstance(operand, str):
				raise BadRequestError(f"'{operator}' at {path.describe()} expects a string.")
			return operand

		elif operator == "$exists":
			return coerce_boolean(operand, path)

		elif operator == "$size":
			return coerce_integer(operand, path)

		elif operator == "$elemMatch":
			return target.accept(self, operand, path)

		elif operator == "$not" and isinstance(operand, dict):
			return self._coerce_operators(node, operand, path)

		else:
			return operand


def coerce_candidate(
	candidate: Any,
	node: FieldNode,
	*,
	languages: Sequence[str] = (),
	skip: Collection[str] = (),
	is_query: bool = False,
	path: FieldPath = FieldPath()
) -> Any:
	""" Recursively validates and converts a candidate against a field-type tree. Raises BadRequestError (or LanguageError) on any mismatch. """
	return node.accept(CandidateCoercer(languages, skip, is_query), candidate, path)

from typing import Any, Collection, Sequence

from .query_operators import LOGICAL_OPERATORS, QUERY_WRAPPER, is_operator, is_operator_dict
from ..schema.field_node import FieldNode, PrimitiveNode, ObjectNode, ArrayNode, AmbiguousNode
from ..schema.field_node_visitor import FieldNodeVisitor
from ..schema.field_path import FieldPath
from ..schema.operation import Operation
from ..utilities.errors import BadRequestError, LanguageError


class CandidateAuthorizer(FieldNodeVisitor):
	""" Strict whitelist walk of a client candidate for one controller operation.
	Rejects unknown keys, keys whose `controller` flag denies the operation, shape mismatches and unknown languages.
	Nothing is ever dropped silently. Only the read operation may carry query operators and dot notation keys. """

	def __init__(self, operation: Operation, languages: Sequence[str] = (), skip: Collection[str] = ()) -> None:
		self.operation = operation
		self.languages = tuple(languages)
		self.skip = frozenset(skip)
		self.is_query = operation == Operation.READ

	def visit_primitive(self, node: PrimitiveNode, value: Any, path: FieldPath) -> None:
		self._check_allowed(node, path)
		if isinstance(value, list) or (isinstance(value, dict) and not (self.is_query and is_operator_dict(value))):
			raise BadRequestError(f"Expected a single value at {path.describe()}, but got {type(value).__name__}.")

	def visit_object(self, node: ObjectNode, value: Any, path: FieldPath) -> None:
		self._check_allowed(node, path)
		if value is None:
			return
		if not isinstance(value, dict):
			raise BadRequestError(f"Expected an object at {path.describe()}, but got {type(value).__name__}.")

		for key, sub_value in value.items():
			if is_operator(key):
				self._authorize_operator(node, key, sub_value, path)
				continue

			sub_path = path.subfield(key)
			if path.is_root() and key in self.skip:
				continue

			if node.is_multilingual and key not in self.languages:
				raise LanguageError(f"Language '{key}' at {path.describe()} is not one of the configured languages: {', '.join(self.languages)}.")

			sub_node = node.properties.get(key)
			if sub_node is None and self.is_query and "." in key:
				sub_node = node.resolve(key)
			if sub_node is None:
				raise BadRequestError(f"Unknown field {sub_path.describe()}.")
			sub_node.accept(self, sub_value, sub_path)

	def visit_array(self, node: ArrayNode, value: Any, path: FieldPath) -> None:
		self._check_allowed(node, path)
		if value is None:
			return
		if isinstance(value, list):
			for idx, element in enumerate(value):
				node.items.accept(self, element, path.subidx(idx))
			return
		if not self.is_query:
			raise BadRequestError(f"Expected an array at {path.describe()}, but got {type(value).__name__}.")
		if not is_operator_dict(value):
			node.items.accept(self, value, path)

	def visit_ambiguous(self, node: AmbiguousNode, value: Any, path: FieldPath) -> None:
		self._check_allowed(node, path)

	def _authorize_operator(self, node: ObjectNode, operator: str, operand: Any, path: FieldPath) -> None:
		if not self.is_query:
			raise BadRequestError(f"Operator '{operator}' is not allowed for {self.operation}.")
		if operator in LOGICAL_OPERATORS:
			if not isinstance(operand, list):
				raise BadRequestError(f"'{operator}' at {path.describe()} expects a list of queries.")
			for clause in operand:
				self.visit_object(node, clause, path)
		elif operator == QUERY_WRAPPER:
			self.visit_object(node, operand, path)

	def _check_allowed(self, node: FieldNode, path: FieldPath) -> None:
		if not node.is_allowed_for(self.operation):
			raise BadRequestError(f"Field {path.describe()} is not allowed for {self.operation}.")


def authorize_candidate(
	candidate: Any,
	node: FieldNode,
	operation: Operation,
	*,
	languages: Sequence[str] = (),
	skip: Collection[str] = ()
) -> None:
	""" Raises a client error when a candidate does not fit the fields a caller may send for an operation. """
	node.accept(CandidateAuthorizer(operation, languages, skip), candidate, FieldPath())

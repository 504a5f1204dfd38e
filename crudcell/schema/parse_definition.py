from typing import Any, Sequence

from .bson_type import BsonType
from .field_node import FieldNode, PrimitiveNode, ObjectNode, ArrayNode, AmbiguousNode, FORBIDDEN_FOR_ALL_PERSONAS
from .field_path import FieldPath
from .identify_bson_type import identify_bson_type
from .operation import Operation
from ..utilities.ambiguous import AMBIGUOUS
from ..utilities.errors import SetupError


def parse_definition(definition: Any, languages: Sequence[str] = (), path: FieldPath = FieldPath()) -> FieldNode:
	""" Validates a framework definition (a $jsonSchema dict that may also carry `isMultilingual`, `forbiddenForPersonas` and `controller`)
	and builds its field-type tree.

	A multilingual field becomes an ObjectNode flagged is_multilingual, keyed by every configured language, each key holding the original field.
	Malformed definitions raise SetupError, since they can only come from application code.
	"""
	if not isinstance(definition, dict):
		raise SetupError(f"The definition of {_name(path)} must be a dict, but got {type(definition).__name__}.")

	_validate_bson_type_aliases(definition, path)

	is_multilingual = definition.get("isMultilingual", False)
	if not isinstance(is_multilingual, bool):
		raise SetupError(f"`isMultilingual` of {_name(path)} must be a bool.")

	controller = _parse_controller(definition.get("controller"), path)
	forbidden_for_personas = _parse_forbidden_for_personas(definition.get("forbiddenForPersonas"), path)

	node = _build_node(definition, languages, path, controller, forbidden_for_personas)
	if not is_multilingual:
		return node

	if not languages:
		raise SetupError(f"{_name(path)} is multilingual, but no languages are configured.")
	return ObjectNode(
		properties={language: node for language in languages},
		controller=controller,
		forbidden_for_personas=forbidden_for_personas,
		is_multilingual=True
	)

def _build_node(
	definition: dict,
	languages: Sequence[str],
	path: FieldPath,
	controller: dict[Operation, bool],
	forbidden_for_personas: tuple[str, ...]
) -> FieldNode:
	bson_type = identify_bson_type(definition)

	if bson_type is AMBIGUOUS:
		return AmbiguousNode(controller=controller, forbidden_for_personas=forbidden_for_personas)

	if bson_type == BsonType.OBJECT:
		properties = definition.get("properties", {})
		if not isinstance(properties, dict):
			raise SetupError(f"`properties` of {_name(path)} must be a dict.")

		nodes: dict[str, FieldNode] = {}
		for field_name, sub_definition in properties.items():
			if not isinstance(field_name, str):
				raise SetupError(f"Property names of {_name(path)} must be strings, but got {field_name!r}.")
			nodes[field_name] = parse_definition(sub_definition, languages, path.subfield(field_name))
		return ObjectNode(properties=nodes, controller=controller, forbidden_for_personas=forbidden_for_personas)

	if bson_type == BsonType.ARRAY:
		items = definition.get("items")
		if items is None:
			items_node: FieldNode = AmbiguousNode()
		elif isinstance(items, dict):
			items_node = parse_definition(items, languages, FieldPath(str(path) + "[]"))
		else:
			raise SetupError(f"`items` of {_name(path)} must be a dict.")
		return ArrayNode(items=items_node, controller=controller, forbidden_for_personas=forbidden_for_personas)

	return PrimitiveNode(bson_type=bson_type, controller=controller, forbidden_for_personas=forbidden_for_personas)

def _validate_bson_type_aliases(definition: dict, path: FieldPath) -> None:
	if "bsonType" not in definition:
		return
	bson_type = definition["bsonType"]
	aliases = bson_type if isinstance(bson_type, list) else [bson_type]
	for alias in aliases:
		if alias is None or alias == "null":
			continue
		if alias not in list(BsonType):
			raise SetupError(f"Unknown bsonType {alias!r} in {_name(path)}.")

def _parse_controller(controller: Any, path: FieldPath) -> dict[Operation, bool]:
	if controller is None:
		return {}
	if not isinstance(controller, dict):
		raise SetupError(f"`controller` of {_name(path)} must be a dict.")

	flags: dict[Operation, bool] = {}
	for operation_name, is_allowed in controller.items():
		try:
			operation = Operation(operation_name)
		except ValueError:
			expected = ", ".join(Operation)
			raise SetupError(f"Unknown controller operation {operation_name!r} in {_name(path)}. Expected one of: {expected}.") from None
		if operation in flags:
			raise SetupError(f"Controller operation {operation_name!r} is given more than once in {_name(path)}.")
		if not isinstance(is_allowed, bool):
			raise SetupError(f"Controller flag {operation_name!r} of {_name(path)} must be a bool.")
		flags[operation] = is_allowed
	return flags

def _parse_forbidden_for_personas(forbidden_for_personas: Any, path: FieldPath) -> tuple[str, ...]:
	if forbidden_for_personas is None:
		return ()
	if forbidden_for_personas == FORBIDDEN_FOR_ALL_PERSONAS:
		return (FORBIDDEN_FOR_ALL_PERSONAS,)
	if isinstance(forbidden_for_personas, list) and all(isinstance(persona, str) for persona in forbidden_for_personas):
		return tuple(forbidden_for_personas)
	raise SetupError(f"`forbiddenForPersonas` of {_name(path)} must be \"*\" or a list of persona names.")

def _name(path: FieldPath) -> str:
	return f"'{path}'" if path else "the root definition"

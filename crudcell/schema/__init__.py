"""
Schema module for describing collections.

This module provides functionality for:
- Validating framework definitions and building their field-type trees
- Deriving and enforcing MongoDB's $jsonSchema
- Keeping all schemas of an application in one registry
"""

# Expose these at the module level
from .bson_type import BsonType
from .operation import Operation
from .identify_bson_type import identify_bson_type
from .field_path import FieldPath
from .field_node import FieldNode, PrimitiveNode, ObjectNode, ArrayNode, AmbiguousNode, FORBIDDEN_FOR_ALL_PERSONAS
from .field_node_visitor import FieldNodeVisitor
from .parse_definition import parse_definition
from .schema import Schema, define_schema
from .schema_registry import SchemaRegistry

"""
Coercion module for turning untyped client input into store-native values.

This module provides functionality for:
- Leaf coercion per BSON type, including ids and versions
- Recursive candidate and query coercion against a field-type tree
- Per-operation field authorization
- Persona-based redaction of returned documents
"""

# Expose these at the module level
from .coerce_primitive import coerce_primitive, coerce_object_id, coerce_version, coerce_date
from .candidate_coercer import CandidateCoercer, coerce_candidate
from .candidate_authorizer import CandidateAuthorizer, authorize_candidate
from .remove_forbidden_properties import remove_forbidden_properties

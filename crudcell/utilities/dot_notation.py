from typing import Any


def flatten(candidate: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """ Converts a nested candidate from object notation into MongoDB dot notation.
    Lists, empty dicts, operator dicts and operator keys (e.g. $or, $query) are kept as leaf values, so an array is always written as a whole.

    Ex: {"name": {"en": "a"}, "tags": ["x"]} -> {"name.en": "a", "tags": ["x"]}
    """
    flattened: dict[str, Any] = {}
    for key, value in candidate.items():
        field_name = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict) and value and not key.startswith("$") and not _is_operator_dict(value):
            flattened.update(flatten(value, field_name))
        else:
            flattened[field_name] = value
    return flattened

def to_update(candidate: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """ Builds an update document from a candidate. Fields sent as None are unset rather than stored as null. """
    set_fields: dict[str, Any] = {}
    unset_fields: dict[str, str] = {}
    for field_name, value in flatten(candidate).items():
        if value is None:
            unset_fields[field_name] = ""
        else:
            set_fields[field_name] = value

    update: dict[str, dict[str, Any]] = {}
    if set_fields:
        update["$set"] = set_fields
    if unset_fields:
        update["$unset"] = unset_fields
    return update

def _is_operator_dict(value: dict) -> bool:
    return all(isinstance(key, str) and key.startswith("$") for key in value)

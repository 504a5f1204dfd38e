""" MongoDB query operators the coercion and authorization walks know about. Any other $-key is passed through untouched. """

LOGICAL_OPERATORS = frozenset({"$and", "$or", "$nor"})
""" Operators holding a list of sub-queries against the same object. """

QUERY_WRAPPER = "$query"

LIST_OPERATORS = frozenset({"$in", "$nin", "$all"})
""" Operators whose operand is a list of values of the field's type. """

COMPARISON_OPERATORS = frozenset({"$eq", "$ne", "$gt", "$gte", "$lt", "$lte"})
""" Operators whose operand is a single value of the field's type. """

STRING_OPERATORS = frozenset({"$regex", "$options"})


def is_operator(key: object) -> bool:
    return isinstance(key, str) and key.startswith("$")

def is_operator_dict(value: object) -> bool:
    return isinstance(value, dict) and bool(value) and all(is_operator(key) for key in value)

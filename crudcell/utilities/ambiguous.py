class Ambiguous:
    """ Returned by identify_bson_type() when a definition does not name exactly one non-null BSON type.
    Coercion leaves values of such fields untouched, so this has to be distinguishable from a real BsonType and from None.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "AMBIGUOUS"

    def __bool__(self):
        return False

AMBIGUOUS = Ambiguous()

class FieldPath(str):
    """ String representation of a path within a candidate, used to name the offending field in errors.
    The root of a candidate is the empty path. List elements are written as [idx]. """

    def __new__(cls, path: str = "") -> 'FieldPath':
        return super().__new__(cls, path)

    def subfield(self, field_name: str) -> 'FieldPath':
        """ Returns a new FieldPath which points to the specified subfield of the current path. """
        if not self:
            return FieldPath(field_name)
        return FieldPath(str(self) + "." + field_name)

    def subidx(self, idx: int) -> 'FieldPath':
        """ Returns a new FieldPath which points to the specified element of the current path. """
        return FieldPath(str(self) + f"[{idx}]")

    def is_root(self) -> bool:
        return not self

    def describe(self) -> str:
        """ Printable form for error messages. """
        return f"'{self}'" if self else "the candidate"

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from bson import Int64, ObjectId
from bson.decimal128 import Decimal128

from crudcell.coercion.coerce_primitive import coerce_object_id, coerce_primitive, coerce_version
from crudcell.schema.bson_type import BsonType
from crudcell.schema.field_path import FieldPath
from crudcell.utilities.errors import BadRequestError, InvalidArgumentsError


class TestCoercePrimitive:
    @pytest.mark.parametrize("bson_type, value, expected", [
        (BsonType.BOOLEAN, True, True),
        (BsonType.BOOLEAN, "false", False),
        (BsonType.INT, 7, 7),
        (BsonType.INT, "42", 42),
        (BsonType.INT, 3.0, 3),
        (BsonType.LONG, "-9000000000", -9000000000),
        (BsonType.DOUBLE, "2.5", 2.5),
        (BsonType.DOUBLE, 2, 2.0),
        (BsonType.STRING, "Dune", "Dune"),
    ])
    def test_accepted_values(self, bson_type, value, expected):
        coerced = coerce_primitive(value, bson_type)
        assert coerced == expected
        assert type(coerced) is type(expected)

    @pytest.mark.parametrize("bson_type, value", [
        (BsonType.BOOLEAN, "yes"),
        (BsonType.BOOLEAN, 1),
        (BsonType.INT, True),
        (BsonType.INT, 3.5),
        (BsonType.INT, "3.5"),
        (BsonType.INT, "three"),
        (BsonType.INT, 2**31),
        (BsonType.LONG, 2**63),
        (BsonType.DOUBLE, float("nan")),
        (BsonType.DOUBLE, "inf"),
        (BsonType.DOUBLE, [1.0]),
        (BsonType.STRING, 5),
        (BsonType.DATE, "yesterday"),
        (BsonType.DATE, 1700000000),
        (BsonType.DECIMAL, "1e"),
        (BsonType.DECIMAL, True),
        (BsonType.INT, "1_000"),
        (BsonType.INT, "\u0661\u0662"),
        (BsonType.DOUBLE, "1_000.5"),
        (BsonType.DOUBLE, "\u0661.5"),
        (BsonType.DECIMAL, "1_000"),
        (BsonType.DECIMAL, "\u0661"),
    ])
    def test_rejected_values(self, bson_type, value):
        with pytest.raises(BadRequestError):
            coerce_primitive(value, bson_type)

    def test_none_stays_none(self):
        for bson_type in BsonType:
            if bson_type.is_primitive:
                assert coerce_primitive(None, bson_type) is None

    def test_int64_is_kept(self):
        value = Int64(5)
        assert coerce_primitive(value, BsonType.LONG) is value

    def test_decimal(self):
        assert coerce_primitive("19.90", BsonType.DECIMAL) == Decimal128("19.90")
        assert coerce_primitive(Decimal("1.5"), BsonType.DECIMAL) == Decimal128("1.5")
        value = Decimal128("3")
        assert coerce_primitive(value, BsonType.DECIMAL) is value

    def test_decimal_precision_is_limited(self):
        with pytest.raises(BadRequestError):
            coerce_primitive("1." + "1" * 40, BsonType.DECIMAL)

    def test_date(self):
        assert coerce_primitive("2024-05-01T10:00:00+00:00", BsonType.DATE) == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
        now = datetime.now(timezone.utc)
        assert coerce_primitive(now, BsonType.DATE) is now

    def test_error_names_the_path(self):
        with pytest.raises(BadRequestError, match="'publisher.name'"):
            coerce_primitive(3, BsonType.STRING, FieldPath("publisher.name"))

    def test_structural_type_is_an_argument_error(self):
        with pytest.raises(InvalidArgumentsError):
            coerce_primitive({}, BsonType.OBJECT)


class TestCoerceObjectId:
    def test_hex_string(self):
        object_id = ObjectId()
        assert coerce_object_id(str(object_id)) == object_id
        assert coerce_object_id(object_id) is object_id

    @pytest.mark.parametrize("value", ["abc", "z" * 24, "5F3C9A1B2C3D4E5F6A7B8C9D", 12, None])
    def test_invalid(self, value):
        with pytest.raises(BadRequestError):
            coerce_object_id(value)


class TestCoerceVersion:
    def test_numbers_and_numeric_strings(self):
        assert coerce_version(0) == 0
        assert coerce_version("3") == 3

    @pytest.mark.parametrize("value", [None, -1, "-2", "one", 1.5, True])
    def test_invalid(self, value):
        with pytest.raises(BadRequestError):
            coerce_version(value)

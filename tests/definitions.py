""" Schema definitions shared by the tests. """
from typing import Any

LANGUAGES = ("en", "tr")

BOOK_DEFINITION: dict[str, Any] = {
    "bsonType": "object",
    "properties": {
        "title": {"bsonType": "string", "isMultilingual": True},
        "author": {"bsonType": "string"},
        "pages": {"bsonType": "int"},
        "price": {"bsonType": "decimal"},
        "rating": {"bsonType": "double"},
        "isAvailable": {"bsonType": "bool"},
        "publishedAt": {"bsonType": "date"},
        "tags": {"bsonType": "array", "items": {"bsonType": "string"}},
        "publisher": {
            "bsonType": "object",
            "properties": {
                "name": {"bsonType": "string"},
                "city": {"bsonType": "string"},
            },
        },
        "notes": {"bsonType": "string", "forbiddenForPersonas": ["reader"]},
        "isbn": {
            "bsonType": "string",
            "controller": {"updateOneByIdAndVersion": False, "replaceOneByIdAndVersion": False},
        },
        "metadata": {"bsonType": ["string", "int"]},
    },
    "required": ["author"],
}

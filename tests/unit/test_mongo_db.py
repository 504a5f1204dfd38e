import pytest
from pymongo import MongoClient

from crudcell.db import mongo_db
from crudcell.utilities.errors import SetupError


class TestMongoDb:
    def test_missing_url(self, monkeypatch):
        monkeypatch.setattr(mongo_db, "_mongo_client", None)
        monkeypatch.delenv("MONGO_URL", raising=False)
        with pytest.raises(SetupError):
            mongo_db.create_mongo_client()

    def test_client_is_cached(self, monkeypatch):
        monkeypatch.setattr(mongo_db, "_mongo_client", None)
        monkeypatch.setenv("MONGO_URL", "mongodb://localhost:27017/?serverSelectionTimeoutMS=1")

        client = mongo_db.create_mongo_client()
        assert isinstance(client, MongoClient)
        assert mongo_db.create_mongo_client() is client
        client.close()

    def test_default_db_name(self, monkeypatch):
        monkeypatch.setenv("MONGO_DB_NAME", "library")
        assert mongo_db.get_default_db_name() == "library"
        monkeypatch.delenv("MONGO_DB_NAME")
        with pytest.raises(SetupError):
            mongo_db.get_default_db_name()

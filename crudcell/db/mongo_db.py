import os

from pymongo import MongoClient

from ..utilities.errors import SetupError

# Module-level cache for the client
_mongo_client: MongoClient | None = None

def create_mongo_client() -> MongoClient:
    global _mongo_client
    if _mongo_client is not None:
        return _mongo_client

    MONGO_URL = os.environ.get("MONGO_URL")
    if not MONGO_URL: raise SetupError("Please set MONGO_URL in your environment variables.")

    # Initialize client
    _mongo_client = MongoClient(MONGO_URL)
    return _mongo_client

def get_default_db_name() -> str:
    MONGO_DB_NAME = os.environ.get("MONGO_DB_NAME")
    if not MONGO_DB_NAME: raise SetupError("Please set MONGO_DB_NAME in your environment variables, or pass db_name explicitly.")
    return MONGO_DB_NAME

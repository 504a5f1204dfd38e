"""
Db module for talking to MongoDB.

This module provides functionality for:
- The cached MongoClient built from environment variables
- A uniform operation set over one collection
- Session and transaction orchestration
"""

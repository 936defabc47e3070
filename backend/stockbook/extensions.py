# Overview: Flask extension instances for the relational database and the document store.

from __future__ import annotations

import sqlite3

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from pymongo import MongoClient
from pymongo.errors import ConfigurationError
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ships with FK enforcement off; cascade/restrict rules depend on it."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class MongoConnector:
    """
    Lazily-connected MongoDB handle owned by the Flask app.

    The client is created on first use and cached in app.extensions, so each
    app instance has its own connection and tests can swap in a database.
    """

    extension_key = "stockbook_mongo"

    def init_app(self, app) -> None:
        app.extensions[self.extension_key] = {"client": None, "db": None}

    def set_database(self, app, database) -> None:
        app.extensions[self.extension_key] = {"client": None, "db": database}

    @property
    def db(self):
        state = current_app.extensions[self.extension_key]
        if state["db"] is None:
            uri = current_app.config.get("MONGODB_URI")
            if not uri:
                raise ConfigurationError("MONGODB_URI is not configured")
            client = MongoClient(uri)
            state["client"] = client
            state["db"] = client[current_app.config["MONGODB_DB_NAME"]]
        return state["db"]

    def close(self, app) -> None:
        state = app.extensions.get(self.extension_key) or {}
        client = state.get("client")
        if client is not None:
            client.close()
        app.extensions[self.extension_key] = {"client": None, "db": None}


mongo = MongoConnector()

# backend/stockbook/routes/setup.py
"""
Schema bootstrap endpoints. Both are idempotent and admin-only.
"""

from flask import Blueprint, current_app
from pymongo.errors import PyMongoError
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_basic_auth
from ..extensions import mongo
from ..services.schema_service import ensure_document_indexes, ensure_relational_schema

setup_bp = Blueprint("setup", __name__, url_prefix="/api/db")


@setup_bp.post("/setup")
@require_basic_auth
def relational_setup_route():
    try:
        tables = ensure_relational_schema()
    except SQLAlchemyError as e:
        current_app.logger.exception("Relational schema setup failed")
        return {"error": "Database setup failed", "message": str(e)}, 500

    return {
        "success": True,
        "message": "Database tables created successfully",
        "tables": tables,
    }


@setup_bp.post("/mongodb-setup")
@require_basic_auth
def document_setup_route():
    try:
        indexes = ensure_document_indexes(mongo.db)
    except PyMongoError as e:
        current_app.logger.exception("Document index setup failed")
        return {"error": "Database setup failed", "message": str(e)}, 500

    return {
        "success": True,
        "message": "MongoDB collections and indexes created successfully",
        "indexes": len(indexes),
    }

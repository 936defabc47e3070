# backend/stockbook/routes/query.py
"""
Relational query handler.

Executes one translated statement per request against the app database:
body {method: run|get|all, query, params} with `$1..$n` placeholders.

Responses:
- run -> {lastInsertRowid, changes}; lastInsertRowid comes from a
  RETURNING id row when the statement has one.
- get -> row or null; all -> list of rows.
- envelope {success: true, data} on success, {error, message} otherwise.
"""

from datetime import date, datetime, time
from decimal import Decimal

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..decorators import require_basic_auth
from ..extensions import db
from ..storage.errors import TranslationError
from ..storage.translator import bind_numbered_params
from ..time_utils import to_date_text, to_timestamp_text

query_bp = Blueprint("query", __name__, url_prefix="/api/db")

QUERY_METHODS = ("run", "get", "all")


def serialize_value(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return to_timestamp_text(value)
    if isinstance(value, date):
        return to_date_text(value)
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    return value


def serialize_row(row) -> dict:
    return {key: serialize_value(value) for key, value in row.items()}


@query_bp.post("/postgres")
@require_basic_auth
def relational_query_route():
    payload = request.get_json(silent=True) or {}
    method = payload.get("method")
    query = payload.get("query")
    params = payload.get("params") or []

    if not method or not query:
        return {"error": "Method and SQL query required"}, 400
    if method not in QUERY_METHODS:
        return {"error": "Invalid method. Use run, get, or all"}, 400
    if not isinstance(params, list):
        return {"error": "params must be a list"}, 400

    try:
        statement, binds = bind_numbered_params(query, params, dialect=db.engine.dialect.name)
    except TranslationError as e:
        return {"error": "Invalid query", "message": str(e)}, 400

    try:
        result = db.session.execute(text(statement), binds)

        if method == "run":
            rows = result.mappings().all() if result.returns_rows else []
            last_insert_rowid = rows[0].get("id") if rows else None
            changes = len(rows) if rows else max(result.rowcount, 0)
            db.session.commit()
            data = {"lastInsertRowid": last_insert_rowid, "changes": changes}
        elif method == "get":
            row = result.mappings().first()
            db.session.commit()
            data = serialize_row(row) if row is not None else None
        else:
            rows = result.mappings().all()
            db.session.commit()
            data = [serialize_row(row) for row in rows]

    except IntegrityError as e:
        db.session.rollback()
        current_app.logger.warning("Integrity violation: %s", e.orig)
        return {"error": "Integrity constraint violated", "message": str(e.orig)}, 409
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception("Relational query failed")
        message = str(getattr(e, "orig", None) or e)
        return {"error": "Database operation failed", "message": message}, 500

    return jsonify({"success": True, "data": data})

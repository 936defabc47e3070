# backend/stockbook/routes/documents.py
"""
Document query handler.

Body (extended JSON): {method, collection, filter, data, options}.
Documents are returned with their native `_id`; clients map it to `id`.
Writes report {lastInsertRowid, changes} like the relational handler, plus
matchedCount for updates.
"""

from flask import Blueprint, Response, current_app, request
from bson import json_util
from bson.errors import InvalidId
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..decorators import require_basic_auth
from ..extensions import mongo

documents_bp = Blueprint("documents", __name__, url_prefix="/api/db")

VALID_METHODS = [
    "insertOne",
    "insertMany",
    "findOne",
    "find",
    "updateOne",
    "updateMany",
    "deleteOne",
    "deleteMany",
    "aggregate",
    "count",
]


def _ejson(body: dict, status: int = 200) -> Response:
    return Response(json_util.dumps(body), status=status, mimetype="application/json")


def _find_kwargs(options: dict) -> dict:
    kwargs = {}
    if options.get("projection"):
        kwargs["projection"] = options["projection"]
    if options.get("sort"):
        kwargs["sort"] = list(options["sort"].items())
    if options.get("limit"):
        kwargs["limit"] = int(options["limit"])
    if options.get("skip"):
        kwargs["skip"] = int(options["skip"])
    return kwargs


def _run(coll, method: str, filter_: dict, data, options: dict):
    if method == "insertOne":
        result = coll.insert_one(data)
        return {"lastInsertRowid": str(result.inserted_id), "changes": 1}

    if method == "insertMany":
        docs = data if isinstance(data, list) else [data]
        result = coll.insert_many(docs)
        first = result.inserted_ids[0] if result.inserted_ids else None
        return {
            "lastInsertRowid": str(first) if first is not None else None,
            "changes": len(result.inserted_ids),
        }

    if method == "findOne":
        kwargs = _find_kwargs(options)
        kwargs.pop("limit", None)
        return coll.find_one(filter_, **kwargs)

    if method == "find":
        return list(coll.find(filter_, **_find_kwargs(options)))

    if method in ("updateOne", "updateMany"):
        update = coll.update_one if method == "updateOne" else coll.update_many
        result = update(filter_, {"$set": data})
        return {"changes": result.modified_count, "matchedCount": result.matched_count}

    if method in ("deleteOne", "deleteMany"):
        delete = coll.delete_one if method == "deleteOne" else coll.delete_many
        result = delete(filter_)
        return {"changes": result.deleted_count}

    if method == "aggregate":
        pipeline = data.get("pipeline", []) if isinstance(data, dict) else []
        return list(coll.aggregate(pipeline))

    return coll.count_documents(filter_)


@documents_bp.post("/mongodb")
@require_basic_auth
def document_query_route():
    try:
        payload = json_util.loads(request.get_data(as_text=True) or "{}")
    except (ValueError, InvalidId):
        return _ejson({"error": "Invalid JSON body"}, 400)
    if not isinstance(payload, dict):
        return _ejson({"error": "Invalid JSON body"}, 400)

    method = payload.get("method")
    collection = payload.get("collection")
    if not method or not collection:
        return _ejson({"error": "Method and collection required"}, 400)
    if method not in VALID_METHODS:
        return _ejson({"error": "Invalid method", "validMethods": VALID_METHODS}, 400)

    filter_ = payload.get("filter") or {}
    data = payload.get("data") if payload.get("data") is not None else {}
    options = payload.get("options") or {}

    try:
        coll = mongo.db[collection]
        result = _run(coll, method, filter_, data, options)
    except DuplicateKeyError as e:
        current_app.logger.warning("Duplicate key in %s: %s", collection, e)
        return _ejson({"error": "Integrity constraint violated", "message": str(e)}, 409)
    except PyMongoError as e:
        current_app.logger.exception("Document operation failed")
        return _ejson({"error": "Database operation failed", "message": str(e)}, 500)

    return _ejson({"success": True, "data": result})

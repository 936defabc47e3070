# backend/stockbook/routes/system.py
"""
System health endpoint.

Reports connectivity for the relational database and, when configured,
the document store. Clients use it as the liveness check before switching
to a remote backend.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import func, select

from ..extensions import db, mongo
from ..models import Company, Product
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check relational connectivity with two cheap counts.
    """
    start_time = time.time()
    try:
        company_count = db.session.scalar(select(func.count()).select_from(Company))
        product_count = db.session.scalar(select(func.count()).select_from(Product))

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "companies": company_count,
                "products": product_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_document_store_health() -> dict:
    state = current_app.extensions.get(mongo.extension_key) or {}
    if state.get("db") is None and not current_app.config.get("MONGODB_URI"):
        return {"status": "not_configured"}

    start_time = time.time()
    try:
        collections = mongo.db.list_collection_names()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"collections": len(collections)},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Document store health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Document store error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: every configured store answered
    - 503: at least one configured store is unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    document_health = check_document_store_health()

    checks = [database_health, document_health]
    if any(check["status"] == "unhealthy" for check in checks):
        overall_status, http_status = "unhealthy", 503
    else:
        overall_status, http_status = "healthy", 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "document_store": document_health,
        }
    }

    return response, http_status

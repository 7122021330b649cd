# backend/importdocs/routes/system.py
"""
System health and version endpoints.

/health probes what the API cannot serve requests without: the database,
the attachment blob store and the stock ledger. Balance drift is reported
but does not fail the check; `flask stock reconcile --fix` repairs it.
"""

import os
import sys
import time
from flask import Blueprint, current_app
from sqlalchemy import text
from ..extensions import db
from ..models import Document
from ..models.documents import STATUS_PENDING
from ..services import stock_service, storage
from importdocs.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def _run_check(name: str, probe) -> dict:
    """Time probe(); any exception marks the check unhealthy."""
    start_time = time.time()
    try:
        details = probe()
        status = "healthy"
        error = None
    except Exception:
        db.session.rollback()
        current_app.logger.exception("%s health check failed", name)
        details = None
        status = "unhealthy"
        error = f"{name} unavailable"

    result = {"status": status, "latency_ms": round((time.time() - start_time) * 1000, 2)}
    if details is not None:
        result["details"] = details
    if error:
        result["error"] = error
    return result


def _database_probe() -> dict:
    db.session.execute(text("SELECT 1"))
    return {
        "pending_documents": db.session.query(Document).filter_by(status=STATUS_PENDING).count(),
    }


def _storage_probe() -> dict:
    root = storage.storage_root()
    if not os.access(root, os.W_OK):
        raise PermissionError(f"Upload folder is not writable: {root}")
    return {"writable": True}


def _stock_ledger_probe() -> dict:
    return {"drifted_balances": len(stock_service.find_balance_drift())}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: All checks healthy
    - 503: One or more checks unhealthy
    """
    start_time = time.time()

    checks = {
        "database": _run_check("Database", _database_probe),
        "storage": _run_check("Blob storage", _storage_probe),
        "stock_ledger": _run_check("Stock ledger", _stock_ledger_probe),
    }
    unhealthy = any(check["status"] == "unhealthy" for check in checks.values())

    response = {
        "status": "unhealthy" if unhealthy else "healthy",
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks,
    }

    return response, 503 if unhealthy else 200


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"

    return {
        "api_version": API_VERSION,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }

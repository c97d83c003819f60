# catalog_sync/audit_log.py
# In-memory log of sync/reconcile runs, served at GET /api/logs.
from typing import List, Dict, Any, Optional
import time
import threading

MAX_ENTRIES = 200

audit_log: List[Dict[str, Any]] = []
lock = threading.Lock()


def add_audit_entry(action: str, user: str, details: str, counts: Optional[Dict[str, Any]] = None):
    entry = {
        "action": action,
        "user": user,
        "timestamp": time.strftime("%Y-%m-%d %H:%M:%S"),
        "details": details,
    }
    if counts:
        entry["counts"] = counts
    with lock:
        audit_log.append(entry)
        del audit_log[:-MAX_ENTRIES]


def record_run(action: str, user: str, result: Dict[str, Any]):
    """Log a finished run with its counters (not its samples)."""
    keys = ("total", "attempted", "created", "updated", "skipped", "not_found", "failed", "warnings")
    counts = {k: result.get(k, 0) for k in keys}
    details = "dry run" if result.get("dry_run") else "live"
    if result.get("cancelled"):
        details += ", cancelled"
    add_audit_entry(action, user, details, counts)


def get_audit_log() -> List[Dict[str, Any]]:
    with lock:
        return list(reversed(audit_log))


def clear_audit_log():
    with lock:
        audit_log.clear()

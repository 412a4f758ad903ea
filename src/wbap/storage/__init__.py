"""
Local plan data storage.

BackupManager works against the RecordRepository interface; the SQLite
store is the implementation used by the CLI.

Usage:
    from wbap.storage import SQLiteRecordStore

    store = SQLiteRecordStore()
    plan = store.get_plan()
    history = store.get_check_ins(plan.action_plan_id)
"""

from wbap.storage.repository import RecordRepository, StorageError
from wbap.storage.sqlite_store import SQLiteRecordStore

__all__ = [
    "RecordRepository",
    "SQLiteRecordStore",
    "StorageError",
]

"""Record store layer for bankfeed."""

from bankfeed.database.base import Condition, RecordStore
from bankfeed.database.directory import StoreDirectory
from bankfeed.database.factories import create_sqlite_store
from bankfeed.database.ledger import StoreLedgerPoster
from bankfeed.database.payments import StorePaymentRecorder
from bankfeed.database.sqlalchemy_db import SQLAlchemyRecordStore

__all__ = [
    "Condition",
    "RecordStore",
    "SQLAlchemyRecordStore",
    "StoreDirectory",
    "StoreLedgerPoster",
    "StorePaymentRecorder",
    "create_sqlite_store",
]

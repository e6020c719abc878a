from .gateway import RecordStoreGateway, HttpRecordStore, InMemoryRecordStore
from .schemas import UserRecord, PaymentRecord

__all__ = [
    "RecordStoreGateway",
    "HttpRecordStore",
    "InMemoryRecordStore",
    "UserRecord",
    "PaymentRecord",
]

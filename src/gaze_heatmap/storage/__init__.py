from .base import RecordStore
from .json import JSONRecordStore
from .parquet import ParquetRecordStore

__all__ = ["RecordStore", "JSONRecordStore", "ParquetRecordStore"]

from .extraction import ExtractedText, extract_upload_text, is_supported_upload
from .store import (
    InvalidRecordKeyError,
    PatientRecordStore,
    RecordError,
    RecordNotFoundError,
    RecordReadError,
)

__all__ = [
    "ExtractedText",
    "InvalidRecordKeyError",
    "PatientRecordStore",
    "RecordError",
    "RecordNotFoundError",
    "RecordReadError",
    "extract_upload_text",
    "is_supported_upload",
]

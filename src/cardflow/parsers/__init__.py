"""Statement file decoding and batching."""
from .models import Batch, NormalizedRow, Rows, RowSet, UploadedFile, WholeDocument
from .source import RowSource
from .batching import BatchPlanner, DEFAULT_BATCH_SIZE
from .normalizer import detect_columns, infer_records_day_first, normalize_record

__all__ = [
    "Batch",
    "NormalizedRow",
    "Rows",
    "RowSet",
    "UploadedFile",
    "WholeDocument",
    "RowSource",
    "BatchPlanner",
    "DEFAULT_BATCH_SIZE",
    "detect_columns",
    "normalize_record",
    "infer_records_day_first",
]

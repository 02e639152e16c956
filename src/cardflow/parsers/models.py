"""Data models for file parsing and batching."""
import mimetypes
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

RawRecord = Dict[str, Any]


@dataclass(frozen=True)
class UploadedFile:
    """An uploaded statement file."""
    file_name: str
    content_type: str  # Declared MIME type, may be empty
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: Path) -> "UploadedFile":
        """Read a local file, guessing its MIME type from the extension."""
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(file_name=path.name, content_type=content_type or "", data=path.read_bytes())


@dataclass(frozen=True)
class Rows:
    """Tabular input: one loosely-typed record per row."""
    records: List[RawRecord]


@dataclass(frozen=True)
class WholeDocument:
    """Paginated input that must be understood as a single unit."""
    data: bytes = field(repr=False)
    mime_type: str
    file_name: str
    text: Optional[str] = field(default=None, repr=False)  # Plain-text rendition, if extractable


RowSet = Union[Rows, WholeDocument]


@dataclass(frozen=True)
class Batch:
    """A bounded group of records, or one whole document."""
    index: int  # Zero-based processing position
    records: Tuple[RawRecord, ...] = ()
    document: Optional[WholeDocument] = None

    @property
    def is_document(self) -> bool:
        return self.document is not None

    @property
    def row_count(self) -> int:
        return 1 if self.is_document else len(self.records)


@dataclass(frozen=True)
class NormalizedRow:
    """Fixed-field view of a raw record."""
    date: Optional[date]
    merchant: str
    description: str
    amount: Optional[Decimal]
    currency: str

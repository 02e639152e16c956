"""Turns an uploaded statement file into rows or a whole-document unit."""
import io
from typing import List, Optional

import pandas as pd

from .models import RawRecord, Rows, RowSet, UploadedFile, WholeDocument
from .pdf import PDFProcessor
from cardflow.utils.logger import get_logger
from cardflow.utils.exceptions import FileReadError, UnsupportedFormat

logger = get_logger()

CSV_TYPES = {"text/csv", "application/csv"}
SPREADSHEET_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
}
PDF_TYPES = {"application/pdf"}

CSV_ENCODINGS = ("utf-8-sig", "latin-1")


class RowSource:
    """Detects the statement format and decodes it."""

    def __init__(self, pdf_processor: Optional[PDFProcessor] = None):
        self.pdf_processor = pdf_processor or PDFProcessor()

    def extract(self, upload: UploadedFile) -> RowSet:
        """
        Decode an uploaded file.

        Args:
            upload: The uploaded file

        Returns:
            Rows for CSV/spreadsheet input, WholeDocument for PDF input

        Raises:
            UnsupportedFormat: If the type/extension is not CSV, XLSX/XLS or PDF
            FileReadError: If the content of a supported format cannot be read
        """
        kind = self.detect_format(upload)
        logger.info(f"Decoding {upload.file_name} as {kind} ({upload.size} bytes)")

        if kind == "csv":
            return Rows(self._read_csv(upload))
        if kind == "spreadsheet":
            return Rows(self._read_spreadsheet(upload))

        text = self.pdf_processor.extract_text(upload.data, upload.file_name)
        return WholeDocument(
            data=upload.data,
            mime_type="application/pdf",
            file_name=upload.file_name,
            text=text,
        )

    @staticmethod
    def detect_format(upload: UploadedFile) -> str:
        """Return "csv", "spreadsheet" or "pdf" from MIME type or extension."""
        content_type = (upload.content_type or "").split(";")[0].strip().lower()
        name = upload.file_name.lower()

        if content_type in CSV_TYPES or name.endswith(".csv"):
            return "csv"
        if content_type in SPREADSHEET_TYPES or name.endswith((".xlsx", ".xls")):
            return "spreadsheet"
        if content_type in PDF_TYPES or name.endswith(".pdf"):
            return "pdf"

        raise UnsupportedFormat(
            f"Unsupported file format for {upload.file_name} ({content_type or 'unknown type'}). "
            f"Use CSV, XLSX or PDF."
        )

    def _read_csv(self, upload: UploadedFile) -> List[RawRecord]:
        last_error = None
        for encoding in CSV_ENCODINGS:
            try:
                df = pd.read_csv(
                    io.BytesIO(upload.data),
                    dtype=str,
                    keep_default_na=False,
                    skip_blank_lines=True,
                    encoding=encoding,
                )
                return self._to_records(df)
            except UnicodeDecodeError as e:
                last_error = e
                logger.debug(f"CSV decode with {encoding} failed for {upload.file_name}: {e}")
            except pd.errors.EmptyDataError:
                return []
            except (pd.errors.ParserError, ValueError) as e:
                raise FileReadError(f"Could not read CSV {upload.file_name}: {e}")

        raise FileReadError(f"Could not decode CSV {upload.file_name}: {last_error}")

    def _read_spreadsheet(self, upload: UploadedFile) -> List[RawRecord]:
        engine = "openpyxl" if upload.file_name.lower().endswith(".xlsx") else None
        try:
            df = pd.read_excel(
                io.BytesIO(upload.data),
                sheet_name=0,
                dtype=str,
                keep_default_na=False,
                engine=engine,
            )
        except Exception as e:
            raise FileReadError(f"Could not read spreadsheet {upload.file_name}: {e}")
        return self._to_records(df)

    @staticmethod
    def _to_records(df: "pd.DataFrame") -> List[RawRecord]:
        """Convert a frame to records, dropping rows with no content."""
        records = []
        for record in df.to_dict(orient="records"):
            if any(str(value).strip() for value in record.values()):
                records.append({str(key).strip(): value for key, value in record.items()})
        logger.debug(f"Decoded {len(records)} non-empty rows")
        return records

"""PDF text rendition for whole-document statements."""
import io
from typing import Optional
import pdfplumber
import pypdf

from cardflow.utils.logger import get_logger

logger = get_logger()


class PDFProcessor:
    """Extracts plain text from PDF bytes."""

    MIN_TEXT_LENGTH = 50

    def extract_text(self, data: bytes, name: str = "document.pdf") -> Optional[str]:
        """
        Extract text from a PDF.

        Tries pdfplumber first and falls back to pypdf. Scanned statements
        yield no usable text; the caller then relies on the raw bytes.

        Args:
            data: PDF file content
            name: File name used in log messages

        Returns:
            Extracted text or None if too short to be useful
        """
        text = self._extract_with_pdfplumber(data, name)

        if not self.validate_extraction(text):
            logger.info(f"pdfplumber extracted {len(text) if text else 0} chars, trying pypdf for {name}")
            text = self._extract_with_pypdf(data, name)

        if not self.validate_extraction(text):
            logger.info(f"No usable text layer in {name}; document will be sent as-is")
            return None

        logger.info(f"Extracted {len(text)} characters from {name}")
        return text

    def validate_extraction(self, text: Optional[str]) -> bool:
        """Return True if the text is long enough to be a statement."""
        return bool(text) and len(text) >= self.MIN_TEXT_LENGTH

    def _extract_with_pdfplumber(self, data: bytes, name: str) -> Optional[str]:
        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                text_parts = []
                for i, page in enumerate(pdf.pages, 1):
                    page_text = page.extract_text()
                    if page_text:
                        text_parts.append(page_text)
                    else:
                        logger.debug(f"pdfplumber: Page {i} extracted no text")

                text = "\n".join(text_parts)
                logger.debug(f"pdfplumber extracted {len(text)} chars from {len(pdf.pages)} pages in {name}")
                return text or None

        except Exception as e:
            logger.warning(f"pdfplumber extraction failed for {name}: {e}")
            return None

    def _extract_with_pypdf(self, data: bytes, name: str) -> Optional[str]:
        try:
            reader = pypdf.PdfReader(io.BytesIO(data))
            text_parts = [page.extract_text() or "" for page in reader.pages]
            text = "\n".join(part for part in text_parts if part)
            logger.debug(f"pypdf extracted {len(text)} chars from {len(reader.pages)} pages in {name}")
            return text or None

        except Exception as e:
            logger.warning(f"pypdf extraction failed for {name}: {e}")
            return None

"""Batch extraction of transactions and statement metadata via the understanding service."""
import json
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .categories import category_slugs
from .fallback import fallback_classify
from .models import (
    DEFAULT_CURRENCY,
    ExtractedTransaction,
    ExtractionFailure,
    ExtractionOutcome,
    ExtractionSuccess,
    FailureReason,
    UnderstandingService,
)
from .response import decode_response
from cardflow.parsers.models import Batch
from cardflow.utils.logger import get_logger
from cardflow.utils.exceptions import LLMError

logger = get_logger()


class ExtractionClient:
    """Sends one batch to the understanding service and validates what comes back."""

    def __init__(
        self,
        service: UnderstandingService,
        categories: Optional[List[str]] = None,
        default_currency: str = DEFAULT_CURRENCY,
        send_pdf_as_text: bool = False,
    ):
        """
        Initialize extraction client.

        Args:
            service: Understanding service used for every batch
            categories: Allowed category slugs (defaults to the shipped catalogue)
            default_currency: Currency assumed when an entry has none
            send_pdf_as_text: Send the text rendition of documents instead of the file
        """
        self.service = service
        self.category_list = categories or category_slugs()
        self.default_currency = default_currency
        self.send_pdf_as_text = send_pdf_as_text

    def extract(self, batch: Batch) -> ExtractionOutcome:
        """
        Extract transactions from a batch.

        Never raises for service or output problems; those come back as
        ExtractionFailure.
        """
        as_text = batch.is_document and self.send_pdf_as_text and bool(batch.document.text)
        prompt = self._build_document_prompt(batch, as_text) if batch.is_document else self._build_rows_prompt(batch)
        document = None if as_text else batch.document

        try:
            response_text = self.service.generate(prompt, document=document)
        except LLMError as e:
            logger.error(f"Batch {batch.index + 1}: understanding service failed: {e}")
            return ExtractionFailure(FailureReason.TRANSPORT, str(e))

        outcome = self.parse_response(response_text)
        if isinstance(outcome, ExtractionFailure):
            logger.error(f"Batch {batch.index + 1}: {outcome.describe()}")
            logger.debug(f"Response text: {(response_text or '')[:500]}")
        else:
            logger.info(
                f"Batch {batch.index + 1}: extracted {len(outcome.transactions)} transactions, "
                f"dropped {len(outcome.dropped)} entries"
            )
        return outcome

    def parse_response(self, response_text: str) -> ExtractionOutcome:
        """Validate raw service output against the extraction contract."""
        decoded = decode_response(response_text)
        if isinstance(decoded, ExtractionFailure):
            return decoded
        if decoded.repaired:
            logger.warning("Service output needed JSON repair")

        data = decoded.data
        if not isinstance(data, dict) or not isinstance(data.get("transactions"), list):
            return ExtractionFailure(
                FailureReason.MISSING_TRANSACTIONS_FIELD,
                "response has no 'transactions' array",
            )

        transactions: List[ExtractedTransaction] = []
        dropped: List[str] = []
        for position, entry in enumerate(data["transactions"], 1):
            transaction = self._validate_entry(entry, position, dropped)
            if transaction is not None:
                transactions.append(transaction)

        metadata = data.get("statement")
        return ExtractionSuccess(
            transactions=transactions,
            metadata=metadata if isinstance(metadata, dict) else {},
            dropped=dropped,
        )

    def _validate_entry(self, entry: Any, position: int, dropped: List[str]) -> Optional[ExtractedTransaction]:
        """Coerce one entry; on failure record a diagnostic and return None."""
        if not isinstance(entry, dict):
            dropped.append(f"Invalid transaction #{position}: not an object ({entry!r})")
            return None

        try:
            transaction = ExtractedTransaction.model_validate(
                entry, context={"default_currency": self.default_currency}
            )
        except ValidationError as e:
            problems = "; ".join(f"{'.'.join(map(str, err['loc'])) or 'entry'}: {err['msg']}" for err in e.errors())
            dropped.append(f"Invalid transaction #{position}: {problems} ({json.dumps(entry, ensure_ascii=False, default=str)})")
            logger.warning(f"Dropping transaction #{position}: {problems}")
            return None

        if transaction.category not in self.category_list:
            fallback = fallback_classify(transaction.merchant, transaction.description)
            logger.debug(
                f"Unknown category '{transaction.category}' for '{transaction.merchant}', "
                f"using '{fallback.category}'"
            )
            transaction = transaction.model_copy(update={
                "category": fallback.category,
                "confidence": fallback.confidence,
                "explanation": fallback.explanation,
            })
        return transaction

    def _build_rows_prompt(self, batch: Batch) -> str:
        """Build extraction prompt for tabular rows."""
        rows = json.dumps([dict(record) for record in batch.records], ensure_ascii=False, indent=2, default=str)
        return f"""You are an expert at processing credit card statements.

Below are rows read from a statement spreadsheet. Column names and formats vary
between issuers and languages.

ROWS:
{rows}

{self._build_instructions()}"""

    def _build_document_prompt(self, batch: Batch, as_text: bool) -> str:
        """Build extraction prompt for a whole statement document."""
        if as_text:
            source = f"STATEMENT TEXT:\n{batch.document.text}"
        else:
            source = "The statement is attached as a PDF document. Read ALL pages."
        return f"""You are an expert at processing credit card statements.

{source}

{self._build_instructions()}"""

    def _build_instructions(self) -> str:
        """Instruction block shared by both prompt kinds."""
        return f"""INSTRUCTIONS:
1. Identify which fields hold the transaction date, merchant, description,
   amount and currency.

2. For EVERY purchase/debit, return:
   - date: YYYY-MM-DD
   - merchant: merchant name
   - description: full description
   - amount: positive number, no currency symbol
   - currency: 3-letter code (USD, EUR, BRL, ...); use {self.default_currency} if unknown
   - category: one of {json.dumps(self.category_list)}
   - confidence: classification confidence between 0 and 1
   - explanation: short reason for the category

3. IGNORE header rows, total/summary rows, empty or invalid rows, and
   payments/credits (return debits only).

4. If the input shows statement-level information, return it in "statement":
   statementDate, dueDate, periodStart, periodEnd (YYYY-MM-DD), totalAmount,
   minimumPayment, previousBalance (numbers), cardNumber (last 4 digits only),
   cardHolder. Omit anything not shown.

Return ONLY a valid JSON object in this format:
{{
  "transactions": [
    {{"date": "2025-10-24", "merchant": "STARBUCKS", "description": "STARBUCKS #12345 NEW YORK NY",
      "amount": 5.75, "currency": "USD", "category": "food", "confidence": 0.95,
      "explanation": "Coffee shop purchase"}}
  ],
  "statement": {{"statementDate": "2025-10-23", "dueDate": "2025-11-07", "totalAmount": 1234.56}}
}}

Do not include any explanations or markdown formatting, just the JSON object."""

"""Single-transaction classification for row-by-row imports."""
import json
from datetime import date
from decimal import Decimal
from typing import List, Optional

from .categories import category_slugs
from .fallback import fallback_classify
from .models import ClassificationResult, DEFAULT_CATEGORY, DEFAULT_CONFIDENCE, DEFAULT_EXPLANATION, UnderstandingService
from .response import DecodedResponse, decode_response
from cardflow.utils.logger import get_logger
from cardflow.utils.exceptions import LLMError

logger = get_logger()


class TransactionClassifier:
    """Asks the understanding service for a category, falling back to keywords."""

    def __init__(self, service: Optional[UnderstandingService], categories: Optional[List[str]] = None):
        """
        Initialize classifier.

        Args:
            service: Understanding service, or None to classify by keywords only
            categories: Allowed category slugs
        """
        self.service = service
        self.category_list = categories or category_slugs()

    def classify(
        self,
        merchant: str,
        description: str,
        amount: Decimal,
        currency: str,
        txn_date: Optional[date],
    ) -> ClassificationResult:
        """Classify one transaction; never raises for service problems."""
        if self.service is None:
            return fallback_classify(merchant, description)

        prompt = self._build_prompt(merchant, description, amount, currency, txn_date)
        try:
            response_text = self.service.generate(prompt)
        except LLMError as e:
            logger.warning(f"Classification failed for '{merchant}', using keywords: {e}")
            return fallback_classify(merchant, description)

        decoded = decode_response(response_text)
        if not isinstance(decoded, DecodedResponse) or not isinstance(decoded.data, dict):
            logger.warning(f"Unusable classification for '{merchant}', using keywords")
            return fallback_classify(merchant, description)

        return self._to_result(decoded.data, merchant, description)

    def _to_result(self, data: dict, merchant: str, description: str) -> ClassificationResult:
        category = str(data.get("category") or DEFAULT_CATEGORY).strip().lower()
        if category not in self.category_list:
            logger.warning(f"Invalid category '{category}' for '{merchant}', using keywords")
            return fallback_classify(merchant, description)

        tags = data.get("tags")
        try:
            confidence = min(1.0, max(0.0, float(data.get("confidence", DEFAULT_CONFIDENCE))))
        except (TypeError, ValueError):
            confidence = DEFAULT_CONFIDENCE

        return ClassificationResult(
            category=category,
            tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
            confidence=confidence,
            explanation=str(data.get("explanation") or DEFAULT_EXPLANATION),
            merchant_clean=str(data.get("merchantClean") or merchant),
        )

    def _build_prompt(self, merchant, description, amount, currency, txn_date) -> str:
        """Build classification prompt."""
        return f"""You are an assistant that classifies credit card transactions.

Analyze the transaction below and return ONLY a valid JSON classification.

Transaction:
- Merchant: {merchant}
- Description: {description}
- Amount: {amount} {currency}
- Date: {txn_date.isoformat() if txn_date else "unknown"}

Categories (use EXACTLY these slugs):
{json.dumps(self.category_list)}

Return JSON in exactly this format:
{{
  "category": "category-slug",
  "tags": ["tag1", "tag2"],
  "confidence": 0.95,
  "explanation": "Why the transaction belongs to this category",
  "merchantClean": "Merchant name without codes, numbers or special characters"
}}

Do not include any explanations or markdown formatting, just the JSON object."""

"""Deterministic keyword classification used when the service cannot classify."""
from typing import Tuple

from .models import ClassificationResult, DEFAULT_CATEGORY

# Checked in order; the first category with a matching keyword wins
KEYWORD_RULES: Tuple[Tuple[str, Tuple[str, ...], str], ...] = (
    ("transport", ("uber", "taxi", "gas", "parking"), "transport"),
    ("food", ("restaurant", "food", "mcdonalds", "starbucks"), "food"),
    ("subscriptions", ("netflix", "spotify", "subscription"), "subscription"),
    ("shopping", ("amazon", "shopping", "store"), "shopping"),
)

MATCH_CONFIDENCE = 0.6
NO_MATCH_CONFIDENCE = 0.3


def fallback_classify(merchant: str, description: str) -> ClassificationResult:
    """Classify a transaction by keywords found in its merchant and description."""
    text = f"{merchant or ''} {description or ''}".lower()

    for category, keywords, tag in KEYWORD_RULES:
        if any(keyword in text for keyword in keywords):
            return ClassificationResult(
                category=category,
                tags=[tag],
                confidence=MATCH_CONFIDENCE,
                explanation="Classified by keyword (fallback)",
                merchant_clean=merchant,
            )

    return ClassificationResult(
        category=DEFAULT_CATEGORY,
        tags=[],
        confidence=NO_MATCH_CONFIDENCE,
        explanation="Could not classify automatically",
        merchant_clean=merchant,
    )

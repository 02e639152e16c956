"""Extraction, classification and aggregation."""
from .models import (
    ClassificationResult,
    CategoryTotal,
    ExtractedTransaction,
    ExtractionFailure,
    ExtractionOutcome,
    ExtractionSuccess,
    FailureReason,
    StatementMetadata,
    UnderstandingService,
)
from .extractor import ExtractionClient
from .classifier import TransactionClassifier
from .fallback import fallback_classify
from .metadata import MetadataMerger
from .aggregator import Aggregator

__all__ = [
    "ClassificationResult",
    "CategoryTotal",
    "ExtractedTransaction",
    "ExtractionFailure",
    "ExtractionOutcome",
    "ExtractionSuccess",
    "FailureReason",
    "StatementMetadata",
    "UnderstandingService",
    "ExtractionClient",
    "TransactionClassifier",
    "fallback_classify",
    "MetadataMerger",
    "Aggregator",
]

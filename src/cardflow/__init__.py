"""CardFlow: credit-card statement import pipeline."""

__version__ = "0.3.0"

"""Transaction aggregation module."""
from decimal import Decimal
from collections import defaultdict
from typing import Dict, Iterable

from .models import CategoryTotal, ExtractedTransaction
from cardflow.utils.logger import get_logger

logger = get_logger()


class Aggregator:
    """Aggregates imported transactions by category."""

    def breakdown(self, transactions: Iterable[ExtractedTransaction]) -> Dict[str, CategoryTotal]:
        """
        Build the category breakdown.

        Args:
            transactions: Imported transactions

        Returns:
            Mapping of category slug to count and total amount
        """
        counts: Dict[str, int] = defaultdict(int)
        totals: Dict[str, Decimal] = defaultdict(Decimal)
        for txn in transactions:
            counts[txn.category] += 1
            totals[txn.category] += txn.amount

        breakdown = {slug: CategoryTotal(count=counts[slug], total=totals[slug]) for slug in counts}
        logger.debug(f"Aggregated transactions into {len(breakdown)} categories")
        return breakdown

    def total(self, transactions: Iterable[ExtractedTransaction]) -> Decimal:
        """Sum of transaction amounts."""
        return sum((txn.amount for txn in transactions), Decimal("0"))

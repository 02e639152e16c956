"""Splits decoded input into bounded batches."""
from typing import List

from .models import Batch, Rows, RowSet, WholeDocument

DEFAULT_BATCH_SIZE = 50


class BatchPlanner:
    """Plans the batches sent to the understanding service."""

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size <= 0:
            raise ValueError(f"Batch size must be positive, got {batch_size}")
        self.batch_size = batch_size

    def plan(self, row_set: RowSet) -> List[Batch]:
        """
        Split rows into consecutive chunks of at most batch_size records.

        A whole document is always a single batch regardless of batch_size.
        """
        if isinstance(row_set, WholeDocument):
            return [Batch(index=0, document=row_set)]
        if not isinstance(row_set, Rows):
            raise TypeError(f"Cannot plan batches for {type(row_set).__name__}")

        records = row_set.records
        return [
            Batch(index=number, records=tuple(records[start:start + self.batch_size]))
            for number, start in enumerate(range(0, len(records), self.batch_size))
        ]

"""Import orchestration."""
from .models import ImportReport, ImportResult, ImportState
from .processor import ImportOrchestrator, MODE_AI, MODE_ROWS

__all__ = ["ImportReport", "ImportResult", "ImportState", "ImportOrchestrator", "MODE_AI", "MODE_ROWS"]

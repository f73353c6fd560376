"""Report aggregation package."""

from budgety.reports.aggregator import ReportService

__all__ = ["ReportService"]

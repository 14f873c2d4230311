"""Risk register core: net score aggregation and the approval-gated edit workflow."""

__version__ = "0.1.0"

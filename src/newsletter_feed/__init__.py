"""AI newsletter aggregation into a personalized story feed."""

__version__ = "0.1.0"

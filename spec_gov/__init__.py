"""API specification governance: lint, score, report and notify."""

__version__ = "0.4.0"

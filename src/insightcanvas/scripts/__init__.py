"""Command line entry points for InsightCanvas."""

"""Metrics for action execution and provider calls."""

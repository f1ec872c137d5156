"""Chat-facing timer components."""

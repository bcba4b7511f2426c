"""HTTP API for the question pipeline."""

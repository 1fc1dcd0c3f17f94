"""Core workflow engine: knowledge store, diff merger, quality gates, stage machine."""

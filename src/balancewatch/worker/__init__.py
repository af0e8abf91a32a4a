"""Long-running entry points."""

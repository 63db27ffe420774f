"""Command-line tools for modekeeper state."""

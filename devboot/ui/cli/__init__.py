"""CLI command groups registered on the root ``devboot`` group."""

"""Shell adapters — subprocess execution and local filesystem."""

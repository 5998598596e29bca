"""High-level client for import and clone workers."""

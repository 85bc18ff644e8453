"""Data bounded context: row-level reads and writes against dynamic tables."""

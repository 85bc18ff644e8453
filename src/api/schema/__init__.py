"""Schema bounded context.

Owns tenant-defined tables, columns, indexes and relations: their metadata
descriptors, the physical DDL behind them and the audit trail of changes.
"""

"""
Core shared utilities for the Namhatta portal.

- core.db: SQLite connection pool
- core.errors: error taxonomy and Flask handlers
- core.hierarchy: senapoti leadership hierarchy policy engine
"""

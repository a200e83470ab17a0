"""
db/ - Database Layer
====================
Handles the PostgreSQL connection pool and schema initialization.
This layer is the lowest in the architecture and has no dependencies on other layers
besides the shared error types.
"""

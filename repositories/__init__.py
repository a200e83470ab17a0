"""
repositories/ - Data Access Layer
==================================
Each repository encapsulates all SQL queries for a specific table.
Repositories receive raw data from the database and return domain model objects.
They are the only place where durable state is read or written.
"""

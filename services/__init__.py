"""
services/ - Business Logic Layer
================================
Status evaluation, renewal, notification dispatch, the reminder scheduler,
and import/export. Services talk to repositories, never to the database.
"""

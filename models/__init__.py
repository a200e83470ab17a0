"""
models/ - Domain Layer
======================
Plain dataclasses and enums for subscriptions, notification config and
settings, plus the shared error types. No I/O happens here.
"""

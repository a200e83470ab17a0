"""
utils/ - Shared helpers (logging, epoch-millisecond dates).
"""

"""
security/ - Handler decorators for access control and rate limiting.
"""

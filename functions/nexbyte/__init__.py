"""
Backend package for the NexByte marketing site and admin dashboard.

This package provides a FastAPI application over a document store
abstraction, plus the email notification layer used by the public forms.
"""

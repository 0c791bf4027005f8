"""Rate limiting adapters.

This package provides a small abstraction layer so the service can run with
an in-memory fixed-window counter store or a shared Redis store without
changing the API layer.
"""

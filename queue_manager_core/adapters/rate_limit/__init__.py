"""Rate limiting adapters.

This package provides a small abstraction layer so hosts can start with the
in-memory fixed-window limiter and later migrate to a shared store without
changing the HTTP layer. State is process-local.
"""

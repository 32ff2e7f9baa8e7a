"""Rate limiting adapters.

This package provides a small abstraction layer over the sliding-window
limiter that protects the message queue, so a shared store could replace the
in-memory one without changing the API layer.
"""

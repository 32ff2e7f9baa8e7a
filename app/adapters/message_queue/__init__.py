"""Message queue adapters.

This package holds the store-and-forward buffers between mobile clients and
controllers. The in-memory implementation is the only backend; the abstract
interface keeps the HTTP layer independent of where entries live.
"""

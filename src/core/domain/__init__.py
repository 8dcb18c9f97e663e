"""Domain models and errors.

Why here:
- Plain, strict data structures (Pydantic v2) describing targets and results.
- The domain knows nothing about sockets, TLS or the CLI, only scan concepts.
"""

"""Core interfaces/abstractions.

Why:
- Defines the contracts (Protocol) that concrete adapters implement.
- Inverts dependencies: the scan engine depends on plugins and connections
  only through these abstractions.
"""

"""
Lumber Kernel

Shared foundation for the lumber manufacturing core:
- Structured JSON logging and request-scoped log context
- Typed exception hierarchy with machine-readable codes
- Injectable clock, dimension and unit-of-measure value objects
- SQLAlchemy models for tally sheets, allocations and yield entries
"""

__version__ = "0.1.0"

"""
Forecourt Kernel

Shared foundation for the fuel-station financial consistency engine:
- Structured JSON logging
- Typed exception taxonomy
- SQLAlchemy base classes, engine and session helpers
- Injectable clock and workflow state-machine value objects
"""

__version__ = "0.1.0"

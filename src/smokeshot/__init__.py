"""Screenshot smoke tests for mobile apps."""

__version__ = "0.1.0"

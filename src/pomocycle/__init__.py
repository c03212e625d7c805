"""pomocycle: a work/break focus timer engine with crash recovery."""

__version__ = "0.1.0"

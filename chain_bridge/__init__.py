"""
Chain bridge package initializer

Keep this module lightweight. Importing the package must not open the
governance database or contact the consensus engine.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]

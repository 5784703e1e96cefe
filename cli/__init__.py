"""
Diploma Registry CLI

Operator command line interface for the diploma credential registry.
"""

__version__ = "1.0.0"

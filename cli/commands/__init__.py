"""
Diploma Registry CLI Commands Package

Command modules for the diploma registry CLI.
"""

__all__ = ['registry', 'issuer', 'credential', 'config']

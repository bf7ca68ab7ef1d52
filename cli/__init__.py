"""
Bitcoin Drive CLI

Command line interface for on-chain file storage.
"""

__version__ = "1.0.0"

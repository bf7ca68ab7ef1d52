"""
Bitcoin Drive CLI Commands Package

Command modules for the Bitcoin Drive CLI.
"""

__all__ = ['upload', 'inspect', 'config']

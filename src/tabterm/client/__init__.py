"""
Python client for a running tabterm service.
"""

from .client import TabTermClient

__all__ = ["TabTermClient"]

"""
Application layer for LAN file sharing.

This package ties the networking components together behind the entry
points used by the command line and the desktop window.
"""

from .node import SharingNode

__all__ = ['SharingNode']

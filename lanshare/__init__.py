"""
LAN File Sharing Application.

This package shares a directory over a simple TCP protocol, finds peers
on the local subnet and downloads files from them.
"""

# Package version
__version__ = "0.1.0"

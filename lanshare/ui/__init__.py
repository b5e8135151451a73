"""
Desktop user interface for the LAN file sharing application.

This package is optional: it needs PyQt5 and qasync, which the command
line and the networking layer do not.
"""

from .main_window import MainWindow, QtEventSink

__all__ = ['MainWindow', 'QtEventSink']

"""
Utility functions for the LAN file sharing application.
"""

from .settings import Settings, SettingsError, load_settings, ensure_directories, get_app_data_dir

__all__ = ['Settings', 'SettingsError', 'load_settings', 'ensure_directories', 'get_app_data_dir']

"""
Tracker Service - composition root and local control server
"""

from .service import TrackerService, find_config_path, load_config_file

__all__ = ["TrackerService", "find_config_path", "load_config_file"]

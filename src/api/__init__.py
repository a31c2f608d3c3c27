"""
API module for discovery status and control
"""

from .main_api import DiscoveryAPI
from .discovery_routes import create_discovery_routes
from .system_routes import create_system_routes

__all__ = ['DiscoveryAPI', 'create_discovery_routes', 'create_system_routes']

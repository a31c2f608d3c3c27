"""
Discovery module for locating the chamber control backend on the local network
"""

from .coordinator import DiscoveryCoordinator
from .models import DiscoveryResult, DiscoveryState, DiscoveryEvent, DiscoveryEventType
from .cache import DiscoveryCache
from .events import DiscoveryEvents

__all__ = ['DiscoveryCoordinator', 'DiscoveryResult', 'DiscoveryState', 'DiscoveryEvent',
           'DiscoveryEventType', 'DiscoveryCache', 'DiscoveryEvents']

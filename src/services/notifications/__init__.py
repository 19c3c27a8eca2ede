"""
Notifications module - Push event bridge and device-token delivery.
"""

from .bridge import BridgeEvent, NotificationBridge
from .device_token import DeviceTokenRetrier

__all__ = ["BridgeEvent", "DeviceTokenRetrier", "NotificationBridge"]

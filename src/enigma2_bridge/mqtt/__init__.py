from .client import MQTTBridge

__all__ = ["MQTTBridge"]

from . import devices, notifications, triggers

__all__ = ["devices", "notifications", "triggers"]

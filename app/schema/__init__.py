"""Schema package exports."""

from .device_tokens import DeviceToken
from .notifications import Notification
from .sql import Comment, Like, Post, User

__all__ = ["Comment", "DeviceToken", "Like", "Notification", "Post", "User"]

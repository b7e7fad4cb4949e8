"""Convenience exports for ORM models."""
from .app_setting import AppSetting
from .featured import FeaturedItem
from .marketplace import MarketplaceImage, PaymentTransaction, Purchase
from .message import Conversation, Message
from .notification import Notification, NotificationRead
from .post import Bookmark, Post, PostComment, PostLike, PostTag
from .user import User

__all__ = [
    "AppSetting",
    "Bookmark",
    "Conversation",
    "FeaturedItem",
    "MarketplaceImage",
    "Message",
    "Notification",
    "NotificationRead",
    "PaymentTransaction",
    "Post",
    "PostComment",
    "PostLike",
    "PostTag",
    "Purchase",
    "User",
]

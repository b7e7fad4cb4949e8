"""Convenience exports for service layer."""
from .auth_service import (
    authenticate_user,
    create_access_token,
    decode_access_token,
    get_current_user,
    get_optional_user,
    register_user,
    require_admin,
)
from .explore_service import list_explore_page, list_tag_categories, list_tag_posts
from .featured_service import delete_featured, get_active_featured, like_featured, set_featured, update_featured
from .marketplace_service import (
    current_price,
    delete_image,
    delete_images,
    download_url,
    is_valid_amount,
    is_valid_phone,
    list_collections,
    list_images,
    list_purchases,
    list_senders,
    send_images,
    set_price,
)
from .message_service import (
    delete_conversation,
    delete_message,
    edit_message,
    find_conversation,
    get_conversation_for,
    get_or_create_conversation,
    list_conversations,
    list_messages,
    send_message,
    unread_message_count,
    upload_message_images,
)
from .notification_service import (
    count_unread_notifications,
    create_notification,
    delete_notification,
    list_notifications,
    mark_all_read,
    update_notification,
)
from .payment_service import cancel_payment, get_transaction, handle_callback, initiate_payment
from .post_service import (
    create_post_comment,
    create_post_record,
    delete_post_record,
    get_post_engagement_snapshot,
    get_post_record,
    list_bookmark_records,
    list_feed_records,
    list_post_comments,
    toggle_bookmark,
    toggle_like,
)
from .profile_service import (
    delete_avatar,
    get_profile,
    get_profile_by_id,
    list_users,
    search_users,
    update_profile,
    update_user_role,
    upload_avatar,
    user_analytics,
)
from .spaces_service import SpacesConfigurationError, SpacesUploadError, get_spaces_client, upload_file_to_spaces

__all__ = [
    "authenticate_user",
    "create_access_token",
    "decode_access_token",
    "get_current_user",
    "get_optional_user",
    "register_user",
    "require_admin",
    "list_explore_page",
    "list_tag_categories",
    "list_tag_posts",
    "delete_featured",
    "get_active_featured",
    "like_featured",
    "set_featured",
    "update_featured",
    "current_price",
    "delete_image",
    "delete_images",
    "download_url",
    "is_valid_amount",
    "is_valid_phone",
    "list_collections",
    "list_images",
    "list_purchases",
    "list_senders",
    "send_images",
    "set_price",
    "delete_conversation",
    "delete_message",
    "edit_message",
    "find_conversation",
    "get_conversation_for",
    "get_or_create_conversation",
    "list_conversations",
    "list_messages",
    "send_message",
    "unread_message_count",
    "upload_message_images",
    "count_unread_notifications",
    "create_notification",
    "delete_notification",
    "list_notifications",
    "mark_all_read",
    "update_notification",
    "cancel_payment",
    "get_transaction",
    "handle_callback",
    "initiate_payment",
    "create_post_comment",
    "create_post_record",
    "delete_post_record",
    "get_post_engagement_snapshot",
    "get_post_record",
    "list_bookmark_records",
    "list_feed_records",
    "list_post_comments",
    "toggle_bookmark",
    "toggle_like",
    "delete_avatar",
    "get_profile",
    "get_profile_by_id",
    "list_users",
    "search_users",
    "update_profile",
    "update_user_role",
    "upload_avatar",
    "user_analytics",
    "SpacesConfigurationError",
    "SpacesUploadError",
    "get_spaces_client",
    "upload_file_to_spaces",
]

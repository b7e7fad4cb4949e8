"""Convenience exports for schema layer."""
from .auth import AuthResponse, LoginRequest, OAuthStartResponse, RegisterRequest
from .explore import ExplorePageResponse, ExplorePost, TagCategory, TagCategoryListResponse, TagPostsResponse
from .featured import FeaturedItemCreate, FeaturedItemResponse, FeaturedItemUpdate
from .marketplace import (
    CollectionGroup,
    CollectionListResponse,
    DeleteImagesRequest,
    DeleteResult,
    MarketplaceImageListResponse,
    MarketplaceImageResponse,
    PaymentCallbackRequest,
    PaymentInitiateRequest,
    PaymentStatusResponse,
    PriceResponse,
    PriceUpdateRequest,
    PurchaseListResponse,
    PurchaseResponse,
    SendImagesResponse,
    SenderListResponse,
)
from .messages import (
    AttachmentUploadResponse,
    ConversationListResponse,
    ConversationLookupResponse,
    ConversationParticipant,
    ConversationResponse,
    MessageEditRequest,
    MessageResponse,
    MessageSendRequest,
    MessageThreadResponse,
    UnreadCountResponse,
)
from .notifications import (
    NotificationCreate,
    NotificationListResponse,
    NotificationResponse,
    NotificationSummaryResponse,
    NotificationUpdate,
    TopBarCountsResponse,
)
from .posts import (
    PostCommentCreate,
    PostCommentListResponse,
    PostCommentResponse,
    PostEngagementResponse,
    PostPageResponse,
    PostResponse,
    TagListResponse,
)
from .profiles import (
    AvatarResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    RoleUpdateRequest,
    UserAnalyticsResponse,
    UserListResponse,
    UserSummary,
)

__all__ = [
    "AuthResponse",
    "LoginRequest",
    "OAuthStartResponse",
    "RegisterRequest",
    "ExplorePageResponse",
    "ExplorePost",
    "TagCategory",
    "TagCategoryListResponse",
    "TagPostsResponse",
    "FeaturedItemCreate",
    "FeaturedItemResponse",
    "FeaturedItemUpdate",
    "CollectionGroup",
    "CollectionListResponse",
    "DeleteImagesRequest",
    "DeleteResult",
    "MarketplaceImageListResponse",
    "MarketplaceImageResponse",
    "PaymentCallbackRequest",
    "PaymentInitiateRequest",
    "PaymentStatusResponse",
    "PriceResponse",
    "PriceUpdateRequest",
    "PurchaseListResponse",
    "PurchaseResponse",
    "SendImagesResponse",
    "SenderListResponse",
    "AttachmentUploadResponse",
    "ConversationListResponse",
    "ConversationLookupResponse",
    "ConversationParticipant",
    "ConversationResponse",
    "MessageEditRequest",
    "MessageResponse",
    "MessageSendRequest",
    "MessageThreadResponse",
    "UnreadCountResponse",
    "NotificationCreate",
    "NotificationListResponse",
    "NotificationResponse",
    "NotificationSummaryResponse",
    "NotificationUpdate",
    "TopBarCountsResponse",
    "PostCommentCreate",
    "PostCommentListResponse",
    "PostCommentResponse",
    "PostEngagementResponse",
    "PostPageResponse",
    "PostResponse",
    "TagListResponse",
    "AvatarResponse",
    "ProfileResponse",
    "ProfileUpdateRequest",
    "RoleUpdateRequest",
    "UserAnalyticsResponse",
    "UserListResponse",
    "UserSummary",
]

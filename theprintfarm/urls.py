"""
URL configuration for the theprintfarm project.

API routes live under ``api/`` without trailing slashes, matching the
paths the web client calls.
"""
from django.contrib import admin
from django.urls import path

from core.views import (
    AdminAnnouncementDetailView,
    AdminAnnouncementListCreateView,
    AdminAnnouncementToggleView,
    AdminMessageListView,
    AdminUserDetailView,
    AdminUserListView,
    AdminUserStatsView,
    AnnouncementDetailView,
    AnnouncementListView,
    ConversationListView,
    FavoriteToggleView,
    HealthView,
    LoginView,
    LogoutView,
    MakerDetailView,
    MakerListView,
    MakerQueueView,
    MessageDeleteView,
    MessageListCreateView,
    MessageReadView,
    ModelDetailView,
    ModelListView,
    MyFavoritesView,
    PrintRequestDetailView,
    PrintRequestListCreateView,
    PrintRequestStatsView,
    PrintRequestStatusView,
    RecentModelsView,
    RefreshSessionView,
    RegisterView,
    ResetPasswordView,
    TagListView,
    ThreadReadAllView,
    ThreadView,
    TrendingModelsView,
    UnreadCountView,
    UpdatePasswordView,
    UserProfileView,
)


urlpatterns = [
    path('admin/', admin.site.urls),
    path('health', HealthView.as_view(), name='health'),

    # Authentication endpoints
    path('api/auth/register', RegisterView.as_view(), name='auth_register'),
    path('api/auth/login', LoginView.as_view(), name='auth_login'),
    path('api/auth/logout', LogoutView.as_view(), name='auth_logout'),
    path('api/auth/refresh', RefreshSessionView.as_view(), name='auth_refresh'),
    path('api/auth/reset-password', ResetPasswordView.as_view(), name='auth_reset_password'),
    path('api/auth/update-password', UpdatePasswordView.as_view(), name='auth_update_password'),

    # Model catalog endpoints
    path('api/models', ModelListView.as_view(), name='model_list'),
    path('api/models/favorites/my', MyFavoritesView.as_view(), name='model_favorites'),
    path('api/models/popular/trending', TrendingModelsView.as_view(), name='model_trending'),
    path('api/models/recent/latest', RecentModelsView.as_view(), name='model_recent'),
    path('api/models/tags/all', TagListView.as_view(), name='model_tags'),
    path('api/models/<int:pk>', ModelDetailView.as_view(), name='model_detail'),
    path('api/models/<int:pk>/favorite', FavoriteToggleView.as_view(), name='model_favorite_toggle'),

    # Print request endpoints
    path('api/print-requests', PrintRequestListCreateView.as_view(), name='print_request_list'),
    path('api/print-requests/maker/queue', MakerQueueView.as_view(), name='print_request_queue'),
    path('api/print-requests/stats/overview', PrintRequestStatsView.as_view(), name='print_request_stats'),
    path('api/print-requests/<int:pk>', PrintRequestDetailView.as_view(), name='print_request_detail'),
    path('api/print-requests/<int:pk>/status', PrintRequestStatusView.as_view(), name='print_request_status'),

    # Message endpoints
    path('api/messages', MessageListCreateView.as_view(), name='message_list'),
    path('api/messages/conversations', ConversationListView.as_view(), name='message_conversations'),
    path('api/messages/unread/count', UnreadCountView.as_view(), name='message_unread_count'),
    path('api/messages/admin/all', AdminMessageListView.as_view(), name='message_admin_list'),
    path('api/messages/thread/<int:partner_id>', ThreadView.as_view(), name='message_thread'),
    path('api/messages/thread/<int:partner_id>/read-all', ThreadReadAllView.as_view(), name='message_thread_read_all'),
    path('api/messages/<int:pk>', MessageDeleteView.as_view(), name='message_delete'),
    path('api/messages/<int:pk>/read', MessageReadView.as_view(), name='message_read'),

    # Announcement endpoints
    path('api/announcements', AnnouncementListView.as_view(), name='announcement_list'),
    path('api/announcements/admin/all', AdminAnnouncementListCreateView.as_view(), name='announcement_admin_list'),
    path('api/announcements/admin', AdminAnnouncementListCreateView.as_view(), name='announcement_admin_create'),
    path('api/announcements/admin/<int:pk>', AdminAnnouncementDetailView.as_view(), name='announcement_admin_detail'),
    path('api/announcements/admin/<int:pk>/toggle', AdminAnnouncementToggleView.as_view(), name='announcement_admin_toggle'),
    path('api/announcements/<int:pk>', AnnouncementDetailView.as_view(), name='announcement_detail'),

    # User endpoints
    path('api/users/profile', UserProfileView.as_view(), name='user_profile'),
    path('api/users/makers', MakerListView.as_view(), name='maker_list'),
    path('api/users/makers/<int:pk>', MakerDetailView.as_view(), name='maker_detail'),
    path('api/users/admin/all', AdminUserListView.as_view(), name='user_admin_list'),
    path('api/users/admin/stats', AdminUserStatsView.as_view(), name='user_admin_stats'),
    path('api/users/admin/<int:pk>', AdminUserDetailView.as_view(), name='user_admin_detail'),
]

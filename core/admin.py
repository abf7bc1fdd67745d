"""
Django admin configuration for ThePrintFarm models.
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _

from .models import (
    Announcement,
    CustomerProfile,
    Favorite,
    MakerProfile,
    Message,
    ModelListing,
    PrintRequest,
    User,
)


class MakerProfileInline(admin.StackedInline):
    model = MakerProfile
    can_delete = False
    extra = 0
    readonly_fields = ['completed_prints', 'rating', 'total_ratings']


class CustomerProfileInline(admin.StackedInline):
    model = CustomerProfile
    can_delete = False
    extra = 0


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    """
    Admin interface for marketplace accounts.

    Passwords live with the identity provider, so the form only exposes
    identity, role and permission fields. Saving a new role swaps the role
    profile through the post_save signal.
    """

    list_display = [
        'email',
        'name',
        'role',
        'is_active',
        'is_staff',
        'last_login',
        'created_at',
    ]

    list_filter = [
        'role',
        'is_active',
        'is_staff',
        'created_at',
    ]

    search_fields = [
        'email',
        'name',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('email', 'name', 'avatar')
        }),
        (_('Role'), {
            'fields': ('role',)
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    readonly_fields = ['created_at', 'updated_at', 'last_login']

    date_hierarchy = 'created_at'

    list_per_page = 25

    def get_inlines(self, request, obj):
        if obj is None:
            return []
        if obj.is_maker():
            return [MakerProfileInline]
        if obj.is_customer():
            return [CustomerProfileInline]
        return []


@admin.register(ModelListing)
class ModelListingAdmin(admin.ModelAdmin):
    """Admin interface for model listings."""

    list_display = [
        'title',
        'thing_id',
        'author_name',
        'complexity',
        'like_count',
        'download_count',
        'created_at',
    ]

    list_filter = [
        'complexity',
        'created_at',
    ]

    search_fields = [
        'title',
        'description',
        'author_name',
        'thing_id',
    ]

    readonly_fields = ['created_at', 'updated_at']

    ordering = ['-created_at']

    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('thing_id', 'title', 'description', 'tags', 'complexity')
        }),
        (_('Source'), {
            'fields': ('image_url', 'source_url', 'license', 'author_name', 'published_date')
        }),
        (_('Printing'), {
            'fields': ('print_time', 'filament_used')
        }),
        (_('Statistics'), {
            'fields': ('download_count', 'like_count')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(PrintRequest)
class PrintRequestAdmin(admin.ModelAdmin):
    """
    Admin interface for print requests.

    Status and lifecycle timestamps are read-only here: status changes must
    go through the API so the transition rules and maker counters apply.
    """

    list_display = [
        'id',
        'model',
        'customer',
        'maker',
        'material',
        'quantity',
        'urgency',
        'status',
        'created_at',
    ]

    list_filter = [
        'status',
        'urgency',
        'created_at',
    ]

    search_fields = [
        'customer__email',
        'maker__email',
        'model__title',
        'material',
    ]

    readonly_fields = [
        'status',
        'accepted_at',
        'started_at',
        'completed_at',
        'delivered_at',
        'created_at',
        'updated_at',
    ]

    raw_id_fields = ['model', 'customer', 'maker']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('model', 'customer', 'maker', 'status')
        }),
        (_('Print Details'), {
            'fields': ('quantity', 'material', 'color', 'urgency', 'notes')
        }),
        (_('Pricing'), {
            'fields': ('quoted_price', 'final_price')
        }),
        (_('Timestamps'), {
            'fields': ('accepted_at', 'started_at', 'completed_at', 'delivered_at', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(Favorite)
class FavoriteAdmin(admin.ModelAdmin):
    list_display = ['user', 'model', 'created_at']
    search_fields = ['user__email', 'model__title']
    raw_id_fields = ['user', 'model']
    ordering = ['-created_at']
    list_per_page = 50


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for direct messages."""

    list_display = [
        'id',
        'sender',
        'receiver',
        'is_read',
        'created_at',
    ]

    list_filter = [
        'is_read',
        'created_at',
    ]

    search_fields = [
        'sender__email',
        'receiver__email',
        'content',
    ]

    readonly_fields = ['created_at']

    raw_id_fields = ['sender', 'receiver']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 50


@admin.register(Announcement)
class AnnouncementAdmin(admin.ModelAdmin):
    """Admin interface for announcements."""

    list_display = [
        'title',
        'type',
        'priority',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'type',
        'is_active',
    ]

    search_fields = [
        'title',
        'content',
    ]

    list_editable = ['is_active', 'priority']

    readonly_fields = ['created_at', 'updated_at']

    ordering = ['-priority', '-created_at']

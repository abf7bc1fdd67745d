"""
Serializers for ThePrintFarm API.

Field names on the wire are camelCase; each maps to its snake_case model
attribute through ``source``.
"""

from decimal import Decimal

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import (
    Announcement,
    CustomerProfile,
    Favorite,
    MakerProfile,
    Message,
    ModelListing,
    PrintRequest,
    Role,
)

User = get_user_model()


def clean_materials(value):
    """Strip entries, drop blanks and duplicates while keeping order."""
    seen = []
    for material in value:
        material = material.strip()
        if material and material not in seen:
            seen.append(material)
    return seen


# ============================================================================
# Accounts and profiles
# ============================================================================

class UserSummarySerializer(serializers.ModelSerializer):
    """Public identity of an account embedded in other resources."""

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'avatar', 'role']
        read_only_fields = fields


class MakerProfileSerializer(serializers.ModelSerializer):
    printerVolume = serializers.CharField(source='printer_volume', max_length=50)
    hasEnclosure = serializers.BooleanField(source='has_enclosure')
    hourlyRate = serializers.DecimalField(
        source='hourly_rate', max_digits=8, decimal_places=2,
        min_value=Decimal('0'), allow_null=True, required=False
    )
    completedPrints = serializers.IntegerField(source='completed_prints', read_only=True)
    totalRatings = serializers.IntegerField(source='total_ratings', read_only=True)

    class Meta:
        model = MakerProfile
        fields = [
            'materials', 'printerVolume', 'resolution', 'hasEnclosure', 'status',
            'availability', 'hourlyRate', 'city', 'state', 'country',
            'completedPrints', 'rating', 'totalRatings',
        ]
        read_only_fields = ['rating']


class CustomerProfileSerializer(serializers.ModelSerializer):
    preferredMaterials = serializers.ListField(
        source='preferred_materials', child=serializers.CharField(max_length=30), required=False
    )
    maxBudget = serializers.DecimalField(
        source='max_budget', max_digits=10, decimal_places=2,
        min_value=Decimal('0'), allow_null=True, required=False
    )

    class Meta:
        model = CustomerProfile
        fields = ['preferredMaterials', 'maxBudget', 'city', 'state', 'country']


class UserSerializer(serializers.ModelSerializer):
    """Full account representation including the role profile."""

    isActive = serializers.BooleanField(source='is_active', read_only=True)
    lastLogin = serializers.DateTimeField(source='last_login', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    makerProfile = serializers.SerializerMethodField()
    customerProfile = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'email', 'name', 'role', 'avatar', 'isActive', 'lastLogin',
            'createdAt', 'makerProfile', 'customerProfile',
        ]
        read_only_fields = fields

    def get_makerProfile(self, obj):
        profile = getattr(obj, 'maker_profile', None) if obj.is_maker() else None
        return MakerProfileSerializer(profile).data if profile else None

    def get_customerProfile(self, obj):
        profile = getattr(obj, 'customer_profile', None) if obj.is_customer() else None
        return CustomerProfileSerializer(profile).data if profile else None


class ProfileSerializer(UserSerializer):
    """Own profile with relation counts."""

    counts = serializers.SerializerMethodField()

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['counts']
        read_only_fields = fields

    def get_counts(self, obj):
        return {
            'favorites': obj.favorites.count(),
            'messagesSent': obj.messages_sent.count(),
            'messagesReceived': obj.messages_received.count(),
            'printRequests': obj.print_requests.count(),
            'assignedPrints': obj.assigned_prints.count(),
        }


class ProfileUpdateSerializer(serializers.Serializer):
    """
    Partial update of the caller's account and role profile.

    Maker-only and customer-only fields are rejected for the other role in
    ``validate``.
    """

    MAKER_FIELDS = ('materials', 'printer_volume', 'resolution', 'has_enclosure',
                    'status', 'availability', 'hourly_rate')
    CUSTOMER_FIELDS = ('preferred_materials', 'max_budget')

    name = serializers.CharField(min_length=2, max_length=50, required=False)
    avatar = serializers.URLField(max_length=500, required=False, allow_blank=True)

    materials = serializers.ListField(child=serializers.CharField(max_length=30), required=False, min_length=1)
    printerVolume = serializers.CharField(source='printer_volume', max_length=50, required=False)
    resolution = serializers.CharField(max_length=20, required=False)
    hasEnclosure = serializers.BooleanField(source='has_enclosure', required=False)
    status = serializers.ChoiceField(choices=MakerProfile.STATUS_CHOICES, required=False)
    availability = serializers.CharField(max_length=200, required=False, allow_blank=True)
    hourlyRate = serializers.DecimalField(
        source='hourly_rate', max_digits=8, decimal_places=2, min_value=Decimal('0'), required=False
    )

    preferredMaterials = serializers.ListField(
        source='preferred_materials', child=serializers.CharField(max_length=30), required=False
    )
    maxBudget = serializers.DecimalField(
        source='max_budget', max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False
    )

    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True)

    def validate_materials(self, value):
        value = clean_materials(value)
        if not value:
            raise serializers.ValidationError('At least one material is required.')
        return value

    def validate_preferredMaterials(self, value):
        return clean_materials(value)

    def validate(self, attrs):
        user = self.context['user']

        if not user.is_maker():
            for field in self.MAKER_FIELDS:
                if field in attrs:
                    raise serializers.ValidationError({field: 'Only makers can set this field.'})
        if not user.is_customer():
            for field in self.CUSTOMER_FIELDS:
                if field in attrs:
                    raise serializers.ValidationError({field: 'Only customers can set this field.'})
        return attrs


class UserBriefSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'name', 'avatar']
        read_only_fields = fields


class MakerSerializer(serializers.ModelSerializer):
    """Maker card for the browse list; ``completed_prints_count`` is annotated."""

    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    makerProfile = MakerProfileSerializer(source='maker_profile', read_only=True)
    completedPrintsCount = serializers.IntegerField(source='completed_prints_count', read_only=True, default=0)

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'avatar', 'role', 'createdAt', 'makerProfile', 'completedPrintsCount']
        read_only_fields = fields


class AdminUserSerializer(UserSerializer):
    """Account as seen by administrators, with annotated relation counts."""

    counts = serializers.SerializerMethodField()

    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['counts']
        read_only_fields = fields

    def get_counts(self, obj):
        return {
            'favorites': getattr(obj, 'favorites_count', 0),
            'printRequests': getattr(obj, 'print_requests_count', 0),
            'assignedPrints': getattr(obj, 'assigned_prints_count', 0),
            'messagesSent': getattr(obj, 'messages_sent_count', 0),
        }


class AdminUserUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=50, required=False)
    role = serializers.ChoiceField(choices=Role.choices, required=False)
    isActive = serializers.BooleanField(source='is_active', required=False)


# ============================================================================
# Authentication
# ============================================================================

class RegisterSerializer(serializers.Serializer):
    """
    Registration payload. Makers must describe their printer
    (``materials``, ``printerVolume``, ``resolution``).
    """

    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True, style={'input_type': 'password'})
    name = serializers.CharField(min_length=2, max_length=50)
    role = serializers.ChoiceField(choices=[Role.CUSTOMER, Role.MAKER])

    materials = serializers.ListField(child=serializers.CharField(max_length=30), required=False)
    printerVolume = serializers.CharField(source='printer_volume', max_length=50, required=False)
    resolution = serializers.CharField(max_length=20, required=False)
    hasEnclosure = serializers.BooleanField(source='has_enclosure', required=False, default=False)
    availability = serializers.CharField(max_length=200, required=False, allow_blank=True)
    hourlyRate = serializers.DecimalField(
        source='hourly_rate', max_digits=8, decimal_places=2, min_value=Decimal('0'), required=False
    )
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True)

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('A user with that email already exists.')
        return value

    def validate_materials(self, value):
        return clean_materials(value)

    def validate(self, attrs):
        if attrs['role'] == Role.MAKER:
            missing = [
                name for name, field in (
                    ('materials', 'materials'),
                    ('printerVolume', 'printer_volume'),
                    ('resolution', 'resolution'),
                )
                if not attrs.get(field)
            ]
            if missing:
                raise serializers.ValidationError({missing[0]: 'This field is required for makers.'})
        return attrs


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(min_length=6, write_only=True, style={'input_type': 'password'})


class RefreshSerializer(serializers.Serializer):
    refresh_token = serializers.CharField()


class ResetPasswordSerializer(serializers.Serializer):
    email = serializers.EmailField()


class UpdatePasswordSerializer(serializers.Serializer):
    password = serializers.CharField(min_length=6, write_only=True)
    access_token = serializers.CharField()


# ============================================================================
# Model listings
# ============================================================================

class ModelListingSerializer(serializers.ModelSerializer):
    """
    Listing with per-user and aggregate fields.

    ``isFavorited``, ``favoritesCount`` and ``printRequestsCount`` come from
    queryset annotations when present, otherwise they are computed.
    """

    thingId = serializers.CharField(source='thing_id')
    imageUrl = serializers.URLField(source='image_url')
    sourceUrl = serializers.URLField(source='source_url')
    authorName = serializers.CharField(source='author_name')
    publishedDate = serializers.DateTimeField(source='published_date')
    downloadCount = serializers.IntegerField(source='download_count')
    likeCount = serializers.IntegerField(source='like_count')
    printTime = serializers.CharField(source='print_time')
    filamentUsed = serializers.CharField(source='filament_used')
    createdAt = serializers.DateTimeField(source='created_at')
    isFavorited = serializers.SerializerMethodField()
    favoritesCount = serializers.SerializerMethodField()
    printRequestsCount = serializers.SerializerMethodField()

    class Meta:
        model = ModelListing
        fields = [
            'id', 'thingId', 'title', 'description', 'imageUrl', 'sourceUrl', 'tags',
            'license', 'authorName', 'publishedDate', 'downloadCount', 'likeCount',
            'complexity', 'printTime', 'filamentUsed', 'createdAt',
            'isFavorited', 'favoritesCount', 'printRequestsCount',
        ]
        read_only_fields = fields

    def get_isFavorited(self, obj):
        if hasattr(obj, 'is_favorited'):
            return bool(obj.is_favorited)
        request = self.context.get('request')
        if not request or not request.user.is_authenticated:
            return False
        return obj.favorites.filter(user=request.user).exists()

    def get_favoritesCount(self, obj):
        if hasattr(obj, 'favorites_count'):
            return obj.favorites_count
        return obj.favorites.count()

    def get_printRequestsCount(self, obj):
        if hasattr(obj, 'print_requests_count'):
            return obj.print_requests_count
        return obj.print_requests.count()


class FavoriteSerializer(serializers.ModelSerializer):
    """A favorited listing flattened with the time it was favorited."""

    favoritedAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Favorite
        fields = ['favoritedAt']

    def to_representation(self, instance):
        data = ModelListingSerializer(instance.model, context=self.context).data
        data.update(super().to_representation(instance))
        data['isFavorited'] = True
        return data


class ModelBriefSerializer(serializers.ModelSerializer):
    imageUrl = serializers.URLField(source='image_url', read_only=True)
    sourceUrl = serializers.URLField(source='source_url', read_only=True)

    class Meta:
        model = ModelListing
        fields = ['id', 'title', 'imageUrl', 'sourceUrl']
        read_only_fields = fields


# ============================================================================
# Print requests
# ============================================================================

class PrintRequestSerializer(serializers.ModelSerializer):
    modelId = serializers.IntegerField(source='model_id', read_only=True)
    customerId = serializers.IntegerField(source='customer_id', read_only=True)
    makerId = serializers.IntegerField(source='maker_id', read_only=True)
    model = ModelBriefSerializer(read_only=True)
    customer = UserSummarySerializer(read_only=True)
    maker = UserSummarySerializer(read_only=True)
    quotedPrice = serializers.DecimalField(source='quoted_price', max_digits=10, decimal_places=2, read_only=True)
    finalPrice = serializers.DecimalField(source='final_price', max_digits=10, decimal_places=2, read_only=True)
    acceptedAt = serializers.DateTimeField(source='accepted_at', read_only=True)
    startedAt = serializers.DateTimeField(source='started_at', read_only=True)
    completedAt = serializers.DateTimeField(source='completed_at', read_only=True)
    deliveredAt = serializers.DateTimeField(source='delivered_at', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = PrintRequest
        fields = [
            'id', 'modelId', 'customerId', 'makerId', 'model', 'customer', 'maker',
            'quantity', 'material', 'color', 'notes', 'urgency', 'status',
            'quotedPrice', 'finalPrice', 'acceptedAt', 'startedAt', 'completedAt',
            'deliveredAt', 'createdAt', 'updatedAt',
        ]
        read_only_fields = fields


class RecentPrintSerializer(serializers.ModelSerializer):
    """Compact print request shown on model pages and maker portfolios."""

    model = ModelBriefSerializer(read_only=True)
    customer = UserBriefSerializer(read_only=True)
    maker = UserBriefSerializer(read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    completedAt = serializers.DateTimeField(source='completed_at', read_only=True)

    class Meta:
        model = PrintRequest
        fields = ['id', 'model', 'customer', 'maker', 'quantity', 'material', 'status', 'createdAt', 'completedAt']
        read_only_fields = fields


class PrintRequestCreateSerializer(serializers.Serializer):
    modelId = serializers.IntegerField(min_value=1)
    makerId = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, max_value=10, default=1)
    material = serializers.CharField(max_length=50)
    color = serializers.CharField(max_length=50, required=False, allow_blank=True, default='')
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    urgency = serializers.ChoiceField(choices=PrintRequest.URGENCY_CHOICES, default='Normal')

    def validate_material(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Material is required.')
        return value


class PrintRequestStatusSerializer(serializers.Serializer):
    """Body of ``PUT /print-requests/<id>/status``. REQUESTED is never a target."""

    TARGET_STATUSES = ['ACCEPTED', 'PRINTING', 'COMPLETED', 'DELIVERED', 'CANCELLED', 'REJECTED']

    status = serializers.ChoiceField(choices=TARGET_STATUSES)
    quotedPrice = serializers.DecimalField(
        source='quoted_price', max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False
    )
    finalPrice = serializers.DecimalField(
        source='final_price', max_digits=10, decimal_places=2, min_value=Decimal('0'), required=False
    )
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)


# ============================================================================
# Messages
# ============================================================================

class MessageSerializer(serializers.ModelSerializer):
    senderId = serializers.IntegerField(source='sender_id', read_only=True)
    receiverId = serializers.IntegerField(source='receiver_id', read_only=True)
    sender = UserSummarySerializer(read_only=True)
    receiver = UserSummarySerializer(read_only=True)
    modelUrl = serializers.CharField(source='model_url', read_only=True)
    isRead = serializers.BooleanField(source='is_read', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Message
        fields = [
            'id', 'senderId', 'receiverId', 'sender', 'receiver', 'content',
            'modelUrl', 'isRead', 'createdAt',
        ]
        read_only_fields = fields


class SendMessageSerializer(serializers.Serializer):
    receiverId = serializers.IntegerField(min_value=1)
    content = serializers.CharField(min_length=1, max_length=1000, trim_whitespace=False)
    modelUrl = serializers.URLField(max_length=500, required=False, allow_blank=True, default='')


class LatestMessageSerializer(serializers.ModelSerializer):
    senderId = serializers.IntegerField(source='sender_id', read_only=True)
    isRead = serializers.BooleanField(source='is_read', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Message
        fields = ['id', 'content', 'createdAt', 'senderId', 'isRead']
        read_only_fields = fields


class ConversationSerializer(serializers.Serializer):
    partnerId = serializers.IntegerField(source='partner_id')
    partner = UserSummarySerializer(allow_null=True)
    lastMessageAt = serializers.DateTimeField(source='last_message_at')
    unreadCount = serializers.IntegerField(source='unread_count')
    latestMessage = LatestMessageSerializer(source='latest_message', allow_null=True)


# ============================================================================
# Announcements
# ============================================================================

class AnnouncementSerializer(serializers.ModelSerializer):
    isActive = serializers.BooleanField(source='is_active', required=False, default=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Announcement
        fields = ['id', 'title', 'content', 'type', 'priority', 'isActive', 'createdAt', 'updatedAt']
        read_only_fields = ['id', 'createdAt', 'updatedAt']
        extra_kwargs = {
            'title': {'min_length': 3, 'max_length': 100},
            'content': {'min_length': 10, 'max_length': 2000},
            'priority': {'min_value': 0, 'max_value': 10},
        }

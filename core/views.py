"""
API views for ThePrintFarm marketplace.

Views stay thin: validation happens in serializers, state changes in
``core.lifecycle`` and ``core.conversations``, and errors propagate as DRF
exceptions to ``core.exceptions.api_exception_handler``.
"""

import logging
from collections import Counter
from datetime import timedelta

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Count, Exists, OuterRef, Q
from django.utils import timezone
from rest_framework import generics, status
from rest_framework.authentication import get_authorization_header
from rest_framework.exceptions import AuthenticationFailed, NotFound, ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import conversations, lifecycle
from .exceptions import IdentityServiceUnavailable
from .identity import (
    IdentityProviderClient,
    IdentityProviderRejected,
    IdentityProviderUnavailable,
    session_from_response,
)
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
from .notifications import EventKind, notify_on_commit
from .pagination import (
    AdminMessagePagination,
    AdminPagination,
    CatalogPagination,
    ThreadPagination,
    paginate,
    pagination_meta,
    parse_positive_int,
)
from .permissions import IsAdmin, IsCustomer, IsMaker
from .serializers import (
    AdminUserSerializer,
    AdminUserUpdateSerializer,
    AnnouncementSerializer,
    ConversationSerializer,
    FavoriteSerializer,
    LoginSerializer,
    MakerSerializer,
    MessageSerializer,
    ModelListingSerializer,
    PrintRequestCreateSerializer,
    PrintRequestSerializer,
    PrintRequestStatusSerializer,
    ProfileSerializer,
    ProfileUpdateSerializer,
    RecentPrintSerializer,
    RefreshSerializer,
    RegisterSerializer,
    ResetPasswordSerializer,
    SendMessageSerializer,
    UpdatePasswordSerializer,
    UserSerializer,
    UserSummarySerializer,
)

User = get_user_model()
logger = logging.getLogger(__name__)


class ClientIPMixin:

    def get_client_ip(self, request):
        """
        Get client IP address from request.
        Handles proxy headers for accurate IP detection.
        """
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            ip = x_forwarded_for.split(',')[0]
        else:
            ip = request.META.get('REMOTE_ADDR')
        return ip


def query_bool(value):
    return str(value).lower() in ('true', '1', 'yes')


def sort_param(request, allowed, default_field, default_order='desc'):
    """
    Turn ``sortBy``/``sortOrder`` query params into an ``order_by`` term.

    Args:
        allowed: Mapping of public sort keys to model field paths
    """
    sort_by = request.query_params.get('sortBy') or default_field
    sort_order = request.query_params.get('sortOrder') or default_order

    if sort_by not in allowed:
        raise ValidationError({'sortBy': f'"sortBy" must be one of {", ".join(allowed)}.'})
    if sort_order not in ('asc', 'desc'):
        raise ValidationError({'sortOrder': '"sortOrder" must be one of asc, desc.'})

    field = allowed[sort_by]
    return field if sort_order == 'asc' else f'-{field}'


# ============================================================================
# Authentication (proxied to the identity provider)
# ============================================================================

class IdentityProviderMixin(ClientIPMixin):
    """Gives auth views an identity provider client; tests may inject one."""

    identity_client = None

    def get_identity_client(self):
        return self.identity_client or IdentityProviderClient.from_settings()

    def get_authenticate_header(self, request):
        # No authenticators on these views; keep rejected credentials a 401
        return 'Bearer'


class RegisterView(IdentityProviderMixin, APIView):
    """
    API endpoint for account registration.

    The account is first created with the identity provider, then the local
    user and its role profile are written in one transaction. A welcome
    email is sent after commit.

    POST /api/auth/register
    Request body:
    {
        "email": "maker@example.com",
        "password": "secret123",
        "name": "Pat Maker",
        "role": "MAKER",
        "materials": ["PLA", "PETG"],
        "printerVolume": "256x256x256mm",
        "resolution": "0.1mm"
    }

    Success response (201):
    {
        "user": {...},
        "session": {"access_token": "...", "refresh_token": "...", ...} | null,
        "message": "Registration successful. Please check your email to verify your account."
    }

    Error responses:
    - 400: Validation error, duplicate email, provider refused the sign-up
    - 503: Identity provider unreachable
    """
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'register'

    def post(self, request, *args, **kwargs):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            provider_answer = self.get_identity_client().sign_up(data['email'], data['password'])
        except IdentityProviderRejected as e:
            logger.warning(
                f"Identity provider rejected registration. Email: {data['email']}, "
                f"Reason: {e.message}, IP: {self.get_client_ip(request)}"
            )
            raise ValidationError(e.message)
        except IdentityProviderUnavailable as e:
            logger.error(f"Identity provider unavailable during registration: {e.message}")
            raise IdentityServiceUnavailable()

        try:
            with transaction.atomic():
                user = self.create_account(data)
        except IntegrityError:
            # Concurrent registration with the same email
            raise ValidationError('A user with that email already exists.')

        logger.info(
            f"User registered. User ID: {user.id}, Email: {user.email}, "
            f"Role: {user.role}, IP: {self.get_client_ip(request)}"
        )

        return Response(
            {
                'user': UserSerializer(user).data,
                'session': session_from_response(provider_answer),
                'message': 'Registration successful. Please check your email to verify your account.',
            },
            status=status.HTTP_201_CREATED
        )

    def create_account(self, data):
        """Create the user; the post_save signal attaches the default profile."""
        user = User.objects.create_user(
            email=data['email'],
            name=data['name'],
            role=data['role'],
        )

        if user.is_maker():
            profile = user.maker_profile
            profile.materials = data['materials']
            profile.printer_volume = data['printer_volume']
            profile.resolution = data['resolution']
            profile.has_enclosure = data.get('has_enclosure', False)
            profile.availability = data.get('availability', '')
            profile.hourly_rate = data.get('hourly_rate')
        else:
            profile = user.customer_profile
        profile.city = data.get('city', '')
        profile.state = data.get('state', '')
        profile.full_clean()
        profile.save()

        notify_on_commit(EventKind.ACCOUNT_WELCOMED, user.email, {
            'user_name': user.name,
            'is_maker': user.is_maker(),
        })
        return user


class LoginView(IdentityProviderMixin, APIView):
    """
    API endpoint for login.

    Security features:
    - Rate limiting per IP (``login`` throttle scope)
    - Generic error message for bad credentials
    - Inactive accounts are refused even with valid credentials
    - Failed login attempt logging for security monitoring

    POST /api/auth/login
    Request body: {"email": "user@example.com", "password": "password123"}

    Success response (200): {"user": {...}, "session": {...}}

    Error responses:
    - 401: {"error": "Invalid credentials"} or {"error": "User not found or inactive"}
    - 503: Identity provider unreachable
    """
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        email = serializer.validated_data['email'].lower().strip()
        password = serializer.validated_data['password']
        client_ip = self.get_client_ip(request)

        try:
            provider_answer = self.get_identity_client().sign_in_with_password(email, password)
        except IdentityProviderRejected:
            logger.warning(f"Failed login attempt. Email: {email}, IP: {client_ip}")
            raise AuthenticationFailed('Invalid credentials')
        except IdentityProviderUnavailable as e:
            logger.error(f"Identity provider unavailable during login: {e.message}")
            raise IdentityServiceUnavailable()

        user = User.objects.select_related('maker_profile', 'customer_profile').filter(
            email__iexact=email
        ).first()
        if user is None or not user.is_active:
            logger.warning(f"Login refused for unknown or inactive account. Email: {email}, IP: {client_ip}")
            raise AuthenticationFailed('User not found or inactive')

        user.last_login = timezone.now()
        user.save(update_fields=['last_login'])

        logger.info(f"Successful login. User: {email} (ID: {user.id}), IP: {client_ip}")

        return Response({
            'user': UserSerializer(user).data,
            'session': session_from_response(provider_answer),
        })


class LogoutView(IdentityProviderMixin, APIView):
    """
    API endpoint for logout. Revokes the bearer session at the provider.

    POST /api/auth/logout
    Headers: Authorization: Bearer <access_token> (optional)

    Success response (200): {"message": "Logged out successfully"}
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        header = get_authorization_header(request).split()

        if len(header) == 2 and header[0].lower() == b'bearer':
            try:
                self.get_identity_client().sign_out(header[1].decode())
            except IdentityProviderRejected as e:
                raise ValidationError(e.message)
            except IdentityProviderUnavailable as e:
                logger.error(f"Identity provider unavailable during logout: {e.message}")
                raise IdentityServiceUnavailable()

        return Response({'message': 'Logged out successfully'})


class RefreshSessionView(IdentityProviderMixin, APIView):
    """
    API endpoint exchanging a refresh token for a new session.

    POST /api/auth/refresh
    Request body: {"refresh_token": "<refresh_token>"}

    Success response (200): {"session": {...}}

    Error responses:
    - 400: {"error": "Refresh token required"}
    - 401: Provider rejected the refresh token
    """
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'refresh'

    def post(self, request, *args, **kwargs):
        serializer = RefreshSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError('Refresh token required')

        try:
            provider_answer = self.get_identity_client().refresh_session(
                serializer.validated_data['refresh_token']
            )
        except IdentityProviderRejected as e:
            logger.warning(f"Refresh token rejected. IP: {self.get_client_ip(request)}")
            raise AuthenticationFailed(e.message)
        except IdentityProviderUnavailable as e:
            logger.error(f"Identity provider unavailable during refresh: {e.message}")
            raise IdentityServiceUnavailable()

        return Response({'session': session_from_response(provider_answer)})


class ResetPasswordView(IdentityProviderMixin, APIView):
    """
    API endpoint sending a password reset email through the provider.

    POST /api/auth/reset-password
    Request body: {"email": "user@example.com"}

    Success response (200): {"message": "Password reset email sent"}
    """
    authentication_classes = []
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'password_reset'

    def post(self, request, *args, **kwargs):
        serializer = ResetPasswordSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError('Email is required')

        try:
            self.get_identity_client().reset_password_for_email(
                serializer.validated_data['email'],
                redirect_to=f"{settings.FRONTEND_URL}/reset-password"
            )
        except IdentityProviderRejected as e:
            raise ValidationError(e.message)
        except IdentityProviderUnavailable as e:
            logger.error(f"Identity provider unavailable during password reset: {e.message}")
            raise IdentityServiceUnavailable()

        return Response({'message': 'Password reset email sent'})


class UpdatePasswordView(IdentityProviderMixin, APIView):
    """
    API endpoint setting a new password with the access token from the reset link.

    POST /api/auth/update-password
    Request body: {"password": "newsecret", "access_token": "<token>"}

    Success response (200): {"message": "Password updated successfully"}
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = UpdatePasswordSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError('Password and access token are required')

        try:
            self.get_identity_client().update_password(
                serializer.validated_data['access_token'],
                serializer.validated_data['password']
            )
        except IdentityProviderRejected as e:
            raise AuthenticationFailed(e.message)
        except IdentityProviderUnavailable as e:
            logger.error(f"Identity provider unavailable during password update: {e.message}")
            raise IdentityServiceUnavailable()

        return Response({'message': 'Password updated successfully'})


# ============================================================================
# Model Catalog
# ============================================================================

def annotated_models(user):
    """Listings annotated with favorite/print counts and the caller's favorite flag."""
    return ModelListing.objects.annotate(
        favorites_count=Count('favorites', distinct=True),
        print_requests_count=Count('print_requests', distinct=True),
        is_favorited=Exists(Favorite.objects.filter(model=OuterRef('pk'), user=user)),
    )


class ModelListView(generics.ListAPIView):
    """
    API endpoint for browsing model listings.

    GET /api/models
    Query parameters:
    - search: Matches title, description or author name (max 100 chars)
    - tags: Comma-separated, matches listings carrying any of them
    - complexity: Beginner, Intermediate or Advanced
    - sortBy: createdAt (default), title, downloadCount, likeCount
    - sortOrder: asc or desc (default)
    - page, limit (default 12, max 50)

    Success response (200): {"items": [...], "pagination": {...}}
    """
    serializer_class = ModelListingSerializer
    pagination_class = CatalogPagination

    SORT_FIELDS = {
        'createdAt': 'created_at',
        'title': 'title',
        'downloadCount': 'download_count',
        'likeCount': 'like_count',
    }

    def get_queryset(self):
        params = self.request.query_params
        queryset = annotated_models(self.request.user)

        search = params.get('search', '').strip()
        if search:
            if len(search) > 100:
                raise ValidationError({'search': 'Search query cannot exceed 100 characters.'})
            queryset = queryset.filter(
                Q(title__icontains=search)
                | Q(description__icontains=search)
                | Q(author_name__icontains=search)
            )

        tags = [tag.strip() for tag in params.get('tags', '').split(',') if tag.strip()]
        if tags:
            tag_filter = Q()
            for tag in tags:
                # Tags are stored as a JSON list; match the quoted element
                tag_filter |= Q(tags__icontains=f'"{tag}"')
            queryset = queryset.filter(tag_filter)

        complexity = params.get('complexity')
        if complexity:
            valid = [choice for choice, _label in ModelListing.COMPLEXITY_CHOICES]
            if complexity not in valid:
                raise ValidationError({'complexity': f'"complexity" must be one of {", ".join(valid)}.'})
            queryset = queryset.filter(complexity=complexity)

        order = sort_param(self.request, self.SORT_FIELDS, 'createdAt')
        return queryset.order_by(order, '-id')


class ModelDetailView(APIView):
    """
    API endpoint for a single model listing.

    GET /api/models/<id>

    Success response (200): listing fields plus
    ``recentPrintRequests`` (the five most recent requests for the model).

    Error responses:
    - 404: {"error": "Model not found"}
    """

    def get(self, request, pk, *args, **kwargs):
        try:
            model = annotated_models(request.user).get(pk=pk)
        except ModelListing.DoesNotExist:
            raise NotFound('Model not found')

        recent = (
            PrintRequest.objects
            .filter(model=model)
            .select_related('model', 'customer', 'maker')
            .order_by('-created_at')[:5]
        )

        data = ModelListingSerializer(model, context={'request': request}).data
        data['recentPrintRequests'] = RecentPrintSerializer(recent, many=True).data
        return Response(data)


class FavoriteToggleView(ClientIPMixin, APIView):
    """
    API endpoint toggling a favorite.

    POST /api/models/<id>/favorite

    Success response (200):
    {"isFavorited": true, "message": "Added to favorites"}
    {"isFavorited": false, "message": "Removed from favorites"}
    """

    def post(self, request, pk, *args, **kwargs):
        if not ModelListing.objects.filter(pk=pk).exists():
            raise NotFound('Model not found')

        with transaction.atomic():
            deleted, _ = Favorite.objects.filter(user=request.user, model_id=pk).delete()
            if not deleted:
                try:
                    with transaction.atomic():
                        Favorite.objects.create(user=request.user, model_id=pk)
                except IntegrityError:
                    logger.warning(f"Concurrent favorite already created. Model ID: {pk}, User: {request.user.email}")

        if deleted:
            logger.info(f"Favorite removed. Model ID: {pk}, User: {request.user.email}")
            return Response({'isFavorited': False, 'message': 'Removed from favorites'})

        logger.info(f"Favorite added. Model ID: {pk}, User: {request.user.email}")
        return Response({'isFavorited': True, 'message': 'Added to favorites'})


class MyFavoritesView(generics.ListAPIView):
    """
    GET /api/models/favorites/my

    Paginated favorites of the caller, newest first; each item is the
    listing plus ``favoritedAt``.
    """
    serializer_class = FavoriteSerializer
    pagination_class = CatalogPagination

    def get_queryset(self):
        return (
            Favorite.objects
            .filter(user=self.request.user)
            .select_related('model')
            .order_by('-created_at', '-id')
        )


class TrendingModelsView(APIView):
    """GET /api/models/popular/trending: most liked, then most downloaded."""

    def get(self, request, *args, **kwargs):
        limit = parse_positive_int(request.query_params.get('limit'), 6, 'limit', maximum=50)
        models = annotated_models(request.user).order_by('-like_count', '-download_count', '-id')[:limit]
        return Response(ModelListingSerializer(models, many=True, context={'request': request}).data)


class RecentModelsView(APIView):
    """GET /api/models/recent/latest: newest listings."""

    def get(self, request, *args, **kwargs):
        limit = parse_positive_int(request.query_params.get('limit'), 6, 'limit', maximum=50)
        models = annotated_models(request.user).order_by('-created_at', '-id')[:limit]
        return Response(ModelListingSerializer(models, many=True, context={'request': request}).data)


class TagListView(APIView):
    """
    GET /api/models/tags/all

    The 50 most used tags as ``[{"tag": "...", "count": n}]``, ties by name.
    """

    def get(self, request, *args, **kwargs):
        counter = Counter()
        for tags in ModelListing.objects.values_list('tags', flat=True):
            counter.update(tags or [])

        ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))[:50]
        return Response([{'tag': tag, 'count': count} for tag, count in ranked])


# ============================================================================
# Print Requests
# ============================================================================

class PrintRequestListCreateView(ClientIPMixin, generics.ListCreateAPIView):
    """
    API endpoint for listing and creating print requests.

    GET /api/print-requests
    Customers see their own requests, makers the ones assigned to them,
    admins all of them. Filters: ``status``, ``urgency``. Newest first.

    POST /api/print-requests (customers only)
    Request body:
    {
        "modelId": 1,
        "makerId": 2,
        "quantity": 2,
        "material": "PETG",
        "color": "Black",
        "notes": "Matte finish please",
        "urgency": "High"
    }

    Success response (201): the created request

    Error responses:
    - 400: Validation error or {"error": "Maker does not support material: X",
           "supportedMaterials": [...]}
    - 403: Caller is not a customer
    - 404: Model or maker not found
    """
    serializer_class = PrintRequestSerializer

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsCustomer()]
        return super().get_permissions()

    def get_queryset(self):
        queryset = lifecycle.visible_print_requests(self.request.user)

        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)

        urgency = self.request.query_params.get('urgency')
        if urgency:
            queryset = queryset.filter(urgency=urgency)

        return queryset.order_by('-created_at', '-id')

    def create(self, request, *args, **kwargs):
        serializer = PrintRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        print_request = lifecycle.create_print_request(
            customer=request.user,
            model_id=data['modelId'],
            maker_id=data['makerId'],
            material=data['material'],
            quantity=data['quantity'],
            color=data['color'],
            notes=data['notes'],
            urgency=data['urgency'],
        )

        print_request = lifecycle.base_queryset().get(pk=print_request.pk)
        return Response(PrintRequestSerializer(print_request).data, status=status.HTTP_201_CREATED)


class PrintRequestDetailView(ClientIPMixin, APIView):
    """
    API endpoint for a single print request.

    GET /api/print-requests/<id>
    Visible to its customer, its maker and admins.

    DELETE /api/print-requests/<id>
    Admins, or the requesting customer while the request is REQUESTED.

    Error responses:
    - 403: {"error": "Access denied"} / {"error": "Cannot delete this request"}
    - 404: {"error": "Print request not found"}
    """

    def get(self, request, pk, *args, **kwargs):
        print_request = lifecycle.get_print_request(pk, request.user)
        return Response(PrintRequestSerializer(print_request).data)

    def delete(self, request, pk, *args, **kwargs):
        lifecycle.delete_print_request(pk, request.user)
        return Response({'message': 'Print request deleted successfully'})


class PrintRequestStatusView(ClientIPMixin, APIView):
    """
    API endpoint for moving a print request through its lifecycle.

    Security features:
    - Only admins and the request's parties may change it
    - Makers may accept, start, complete or reject; customers may only
      cancel while the request is still REQUESTED
    - Enforces the status transition table
    - Row lock serializes concurrent updates

    PUT /api/print-requests/<id>/status
    Request body:
    {"status": "ACCEPTED", "quotedPrice": 25.5, "notes": "Ready Friday"}

    Success response (200): the updated request

    Error responses:
    - 400: {"error": "Invalid status transition from X to Y"}
    - 403: {"error": "Not authorized to update this request"}
    - 404: {"error": "Print request not found"}
    """

    def put(self, request, pk, *args, **kwargs):
        serializer = PrintRequestStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        lifecycle.transition_print_request(
            pk,
            request.user,
            data['status'],
            quoted_price=data.get('quoted_price'),
            final_price=data.get('final_price'),
            notes=data.get('notes'),
        )

        logger.info(
            f"Status update served. Request ID: {pk}, Status: {data['status']}, "
            f"IP: {self.get_client_ip(request)}"
        )

        print_request = lifecycle.base_queryset().get(pk=pk)
        return Response(PrintRequestSerializer(print_request).data)


class MakerQueueView(APIView):
    """
    GET /api/print-requests/maker/queue

    The caller's work queue (makers only): active requests unless
    ``status`` is given, most urgent first, then oldest first.
    """
    permission_classes = [IsMaker]

    def get(self, request, *args, **kwargs):
        queue = lifecycle.maker_queue(request.user, status=request.query_params.get('status'))
        items, meta = paginate(request, queue, page_size=20)
        return Response({
            'items': PrintRequestSerializer(items, many=True).data,
            'pagination': meta,
        })


class PrintRequestStatsView(APIView):
    """GET /api/print-requests/stats/overview: per-status counts of visible requests."""

    def get(self, request, *args, **kwargs):
        return Response(lifecycle.status_overview(request.user))


# ============================================================================
# Messages
# ============================================================================

class MessageListCreateView(ClientIPMixin, APIView):
    """
    API endpoint for the caller's messages.

    GET /api/messages
    All messages sent or received by the caller, newest first.
    ``unreadOnly=true`` restricts to unread messages received.

    POST /api/messages
    Request body:
    {"receiverId": 2, "content": "Hi!", "modelUrl": "https://..."}

    Success response (201): the message

    Error responses:
    - 400: {"error": "Cannot send message to yourself"} or validation error
    - 404: {"error": "Receiver not found or inactive"}
    """

    def get(self, request, *args, **kwargs):
        user = request.user
        queryset = Message.objects.select_related('sender', 'receiver')

        if query_bool(request.query_params.get('unreadOnly', 'false')):
            queryset = queryset.filter(receiver=user, is_read=False)
        else:
            queryset = queryset.filter(Q(sender=user) | Q(receiver=user))

        items, meta = paginate(request, queryset.order_by('-created_at', '-id'), page_size=20)
        return Response({
            'items': MessageSerializer(items, many=True).data,
            'pagination': meta,
        })

    def post(self, request, *args, **kwargs):
        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        message = conversations.send_message(
            request.user,
            data['receiverId'],
            data['content'],
            model_url=data.get('modelUrl', ''),
        )
        return Response(MessageSerializer(message).data, status=status.HTTP_201_CREATED)


class ConversationListView(APIView):
    """
    GET /api/messages/conversations

    One entry per counterpart with ``lastMessageAt``, ``unreadCount`` and
    ``latestMessage``; most recent activity first.
    """

    def get(self, request, *args, **kwargs):
        entries = conversations.list_conversations(request.user)
        items, meta = paginate(request, entries, page_size=20)
        return Response({
            'items': ConversationSerializer(items, many=True).data,
            'pagination': meta,
        })


class ThreadView(APIView):
    """
    GET /api/messages/thread/<partnerId>

    One page of the thread with a counterpart, oldest message first. Serving
    the page marks the counterpart's messages to the caller as read.

    Success response (200): {"partner": {...}, "items": [...], "pagination": {...}}
    """

    def get(self, request, partner_id, *args, **kwargs):
        page = parse_positive_int(request.query_params.get('page'), 1, 'page')
        limit = parse_positive_int(
            request.query_params.get('limit'), ThreadPagination.page_size, 'limit',
            maximum=ThreadPagination.max_page_size
        )

        partner, messages, total = conversations.get_thread(request.user, partner_id, page=page, limit=limit)
        return Response({
            'partner': UserSummarySerializer(partner).data,
            'items': MessageSerializer(messages, many=True).data,
            'pagination': pagination_meta(page, limit, total),
        })


class MessageReadView(APIView):
    """PUT /api/messages/<id>/read: receiver marks a message as read."""

    def put(self, request, pk, *args, **kwargs):
        message = conversations.mark_read(request.user, pk)
        return Response(MessageSerializer(message).data)


class ThreadReadAllView(APIView):
    """PUT /api/messages/thread/<partnerId>/read-all"""

    def put(self, request, partner_id, *args, **kwargs):
        updated = conversations.mark_thread_read(request.user, partner_id)
        return Response({'message': 'Messages marked as read', 'updatedCount': updated})


class MessageDeleteView(APIView):
    """DELETE /api/messages/<id>: sender or admin."""

    def delete(self, request, pk, *args, **kwargs):
        conversations.delete_message(request.user, pk)
        return Response({'message': 'Message deleted successfully'})


class UnreadCountView(APIView):
    """GET /api/messages/unread/count"""

    def get(self, request, *args, **kwargs):
        return Response({'unreadCount': conversations.unread_count(request.user)})


class AdminMessageListView(generics.ListAPIView):
    """
    GET /api/messages/admin/all (admins only)

    Every message, newest first. Filters: ``userId`` (sent or received by),
    ``search`` (content, case-insensitive). Default page size 50.
    """
    permission_classes = [IsAdmin]
    serializer_class = MessageSerializer

    pagination_class = AdminMessagePagination

    def get_queryset(self):
        queryset = Message.objects.select_related('sender', 'receiver')

        user_id = self.request.query_params.get('userId')
        if user_id:
            user_id = parse_positive_int(user_id, None, 'userId')
            queryset = queryset.filter(Q(sender_id=user_id) | Q(receiver_id=user_id))

        search = self.request.query_params.get('search', '').strip()
        if search:
            queryset = queryset.filter(content__icontains=search)

        return queryset.order_by('-created_at', '-id')


# ============================================================================
# Announcements
# ============================================================================

class AnnouncementListView(APIView):
    """GET /api/announcements: active announcements, highest priority first, then newest."""

    def get(self, request, *args, **kwargs):
        announcements = Announcement.objects.filter(is_active=True).order_by('-priority', '-created_at', '-id')
        return Response(AnnouncementSerializer(announcements, many=True).data)


class AnnouncementDetailView(APIView):
    """
    GET /api/announcements/<id>

    Inactive announcements are only visible to admins.
    """

    def get(self, request, pk, *args, **kwargs):
        announcement = Announcement.objects.filter(pk=pk).first()
        if announcement is None or (not announcement.is_active and not request.user.is_admin()):
            raise NotFound('Announcement not found')
        return Response(AnnouncementSerializer(announcement).data)


class AdminAnnouncementListCreateView(ClientIPMixin, generics.ListCreateAPIView):
    """
    API endpoint for announcement management (admins only).

    GET /api/announcements/admin/all
    Filters: ``isActive`` (true/false), ``type``. Default page size 20.

    POST /api/announcements/admin
    Request body:
    {"title": "Maintenance", "content": "Down on Sunday 2-4am", "type": "WARNING", "priority": 5}
    """
    permission_classes = [IsAdmin]
    serializer_class = AnnouncementSerializer
    pagination_class = AdminPagination

    def get_queryset(self):
        queryset = Announcement.objects.all()

        is_active = self.request.query_params.get('isActive')
        if is_active is not None:
            queryset = queryset.filter(is_active=query_bool(is_active))

        announcement_type = self.request.query_params.get('type')
        if announcement_type:
            queryset = queryset.filter(type=announcement_type)

        return queryset.order_by('-priority', '-created_at', '-id')

    def perform_create(self, serializer):
        announcement = serializer.save()
        logger.info(
            f"Announcement created. ID: {announcement.id}, Admin: {self.request.user.email}, "
            f"IP: {self.get_client_ip(self.request)}"
        )


class AdminAnnouncementDetailView(ClientIPMixin, APIView):
    """
    PUT /api/announcements/admin/<id>: partial update
    DELETE /api/announcements/admin/<id>
    """
    permission_classes = [IsAdmin]

    def get_object(self, pk):
        try:
            return Announcement.objects.get(pk=pk)
        except Announcement.DoesNotExist:
            raise NotFound('Announcement not found')

    def put(self, request, pk, *args, **kwargs):
        announcement = self.get_object(pk)
        serializer = AnnouncementSerializer(announcement, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()

        logger.info(f"Announcement updated. ID: {pk}, Admin: {request.user.email}")
        return Response(serializer.data)

    def delete(self, request, pk, *args, **kwargs):
        announcement = self.get_object(pk)
        announcement.delete()

        logger.info(
            f"Announcement deleted. ID: {pk}, Admin: {request.user.email}, "
            f"IP: {self.get_client_ip(request)}"
        )
        return Response({'message': 'Announcement deleted successfully'})


class AdminAnnouncementToggleView(APIView):
    """PUT /api/announcements/admin/<id>/toggle: flip ``isActive``."""
    permission_classes = [IsAdmin]

    def put(self, request, pk, *args, **kwargs):
        with transaction.atomic():
            announcement = Announcement.objects.select_for_update().filter(pk=pk).first()
            if announcement is None:
                raise NotFound('Announcement not found')
            announcement.is_active = not announcement.is_active
            announcement.save()

        logger.info(
            f"Announcement toggled. ID: {pk}, Active: {announcement.is_active}, "
            f"Admin: {request.user.email}"
        )
        return Response(AnnouncementSerializer(announcement).data)


# ============================================================================
# Users and Profiles
# ============================================================================

class UserProfileView(ClientIPMixin, APIView):
    """
    API endpoint for the caller's own profile.

    GET /api/users/profile
    Success response (200): account, role profile and relation counts

    PUT /api/users/profile
    Partial update of the account (name, avatar) and of the role profile
    (maker: materials, printerVolume, resolution, hasEnclosure, status,
    availability, hourlyRate; customer: preferredMaterials, maxBudget;
    both: city, state). All changes are written in one transaction.

    Error responses:
    - 400: Validation error, or a field belonging to the other role
    """

    def get(self, request, *args, **kwargs):
        return Response(ProfileSerializer(request.user).data)

    def put(self, request, *args, **kwargs):
        user = request.user
        serializer = ProfileUpdateSerializer(data=request.data, context={'user': user})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        with transaction.atomic():
            account_fields = [field for field in ('name', 'avatar') if field in data]
            if account_fields:
                for field in account_fields:
                    setattr(user, field, data[field])
                user.save(update_fields=account_fields + ['updated_at'])

            profile = None
            if user.is_maker():
                profile = MakerProfile.objects.select_for_update().get(user=user)
                profile_fields = ProfileUpdateSerializer.MAKER_FIELDS
            elif user.is_customer():
                profile = CustomerProfile.objects.select_for_update().get(user=user)
                profile_fields = ProfileUpdateSerializer.CUSTOMER_FIELDS

            if profile is not None:
                changed = [field for field in profile_fields + ('city', 'state') if field in data]
                if changed:
                    for field in changed:
                        setattr(profile, field, data[field])
                    profile.full_clean()
                    profile.save(update_fields=changed)

        logger.info(
            f"Profile updated. User: {user.email} (ID: {user.id}), "
            f"Fields: {', '.join(request.data.keys())}, IP: {self.get_client_ip(request)}"
        )

        user = User.objects.select_related('maker_profile', 'customer_profile').get(pk=user.pk)
        return Response(ProfileSerializer(user).data)


def makers_queryset():
    return (
        User.objects
        .filter(role=Role.MAKER, is_active=True, maker_profile__isnull=False)
        .select_related('maker_profile')
        .annotate(completed_prints_count=Count(
            'assigned_prints', filter=Q(assigned_prints__status='COMPLETED')
        ))
    )


class MakerListView(generics.ListAPIView):
    """
    API endpoint for browsing makers.

    GET /api/users/makers
    Query parameters:
    - material: Maker prints with this material
    - status: ONLINE, OFFLINE, BUSY or AWAY
    - city: Case-insensitive substring
    - state: Exact match
    - sortBy: rating (default), completedPrints, hourlyRate, createdAt
    - sortOrder: asc or desc (default)
    - page, limit (default 12, max 50)
    """
    serializer_class = MakerSerializer
    pagination_class = CatalogPagination

    SORT_FIELDS = {
        'rating': 'maker_profile__rating',
        'completedPrints': 'maker_profile__completed_prints',
        'hourlyRate': 'maker_profile__hourly_rate',
        'createdAt': 'created_at',
    }

    def get_queryset(self):
        params = self.request.query_params
        queryset = makers_queryset()

        material = params.get('material', '').strip()
        if material:
            queryset = queryset.filter(maker_profile__materials__icontains=f'"{material}"')

        maker_status = params.get('status')
        if maker_status:
            queryset = queryset.filter(maker_profile__status=maker_status)

        city = params.get('city', '').strip()
        if city:
            queryset = queryset.filter(maker_profile__city__icontains=city)

        state = params.get('state', '').strip()
        if state:
            queryset = queryset.filter(maker_profile__state=state)

        order = sort_param(self.request, self.SORT_FIELDS, 'rating')
        return queryset.order_by(order, '-id')


class MakerDetailView(APIView):
    """
    GET /api/users/makers/<id>

    Public maker profile with ``recentWork``: the six most recently
    completed prints.
    """

    def get(self, request, pk, *args, **kwargs):
        maker = makers_queryset().filter(pk=pk).first()
        if maker is None:
            raise NotFound('Maker not found')

        recent_work = (
            PrintRequest.objects
            .filter(maker=maker, status='COMPLETED')
            .select_related('model', 'customer', 'maker')
            .order_by('-completed_at', '-id')[:6]
        )

        data = MakerSerializer(maker).data
        data['recentWork'] = RecentPrintSerializer(recent_work, many=True).data
        return Response(data)


class AdminUserListView(generics.ListAPIView):
    """
    GET /api/users/admin/all (admins only)

    Filters: ``role``, ``isActive``, ``search`` (name or email).
    sortBy: createdAt (default), name, email, lastLogin.
    """
    permission_classes = [IsAdmin]
    serializer_class = AdminUserSerializer
    pagination_class = AdminPagination

    SORT_FIELDS = {
        'createdAt': 'created_at',
        'name': 'name',
        'email': 'email',
        'lastLogin': 'last_login',
    }

    def get_queryset(self):
        params = self.request.query_params
        queryset = User.objects.select_related('maker_profile', 'customer_profile').annotate(
            favorites_count=Count('favorites', distinct=True),
            print_requests_count=Count('print_requests', distinct=True),
            assigned_prints_count=Count('assigned_prints', distinct=True),
            messages_sent_count=Count('messages_sent', distinct=True),
        )

        role = params.get('role')
        if role:
            queryset = queryset.filter(role=role)

        is_active = params.get('isActive')
        if is_active is not None:
            queryset = queryset.filter(is_active=query_bool(is_active))

        search = params.get('search', '').strip()
        if search:
            queryset = queryset.filter(Q(name__icontains=search) | Q(email__icontains=search))

        order = sort_param(self.request, self.SORT_FIELDS, 'createdAt')
        return queryset.order_by(order, '-id')


class AdminUserDetailView(ClientIPMixin, APIView):
    """
    API endpoint for account administration (admins only).

    PUT /api/users/admin/<id>
    Request body: {"name": "...", "role": "MAKER", "isActive": false}
    Changing the role swaps the role profile in the same transaction.
    Admins cannot deactivate their own account or change their own role.

    DELETE /api/users/admin/<id>
    Refused for the caller's own account and for accounts with active
    print requests (as customer or maker).
    """
    permission_classes = [IsAdmin]

    def put(self, request, pk, *args, **kwargs):
        serializer = AdminUserUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if request.user.pk == pk:
            if data.get('is_active') is False:
                raise ValidationError('Cannot deactivate your own account')
            if 'role' in data and data['role'] != request.user.role:
                raise ValidationError('Cannot change your own role')

        with transaction.atomic():
            try:
                user = User.objects.select_for_update().get(pk=pk)
            except User.DoesNotExist:
                raise NotFound('User not found')

            old_role = user.role
            for field, value in data.items():
                setattr(user, field, value)
            user.save()

        if user.role != old_role:
            logger.info(
                f"User role changed. User ID: {user.id}, {old_role} -> {user.role}, "
                f"Admin: {request.user.email}, IP: {self.get_client_ip(request)}"
            )
        logger.info(f"User updated by admin. User ID: {user.id}, Admin: {request.user.email}")

        user = User.objects.select_related('maker_profile', 'customer_profile').get(pk=user.pk)
        return Response(UserSerializer(user).data)

    def delete(self, request, pk, *args, **kwargs):
        if request.user.pk == pk:
            raise ValidationError('Cannot delete your own account')

        with transaction.atomic():
            try:
                user = User.objects.select_for_update().get(pk=pk)
            except User.DoesNotExist:
                raise NotFound('User not found')

            has_active_prints = PrintRequest.objects.filter(
                Q(customer=user) | Q(maker=user),
                status__in=PrintRequest.ACTIVE_STATUSES
            ).exists()
            if has_active_prints:
                raise ValidationError('Cannot delete user with active print requests')

            user.delete()

        logger.info(
            f"User deleted by admin. User ID: {pk}, Admin: {request.user.email}, "
            f"IP: {self.get_client_ip(request)}"
        )
        return Response({'message': 'User deleted successfully'})


class AdminUserStatsView(APIView):
    """GET /api/users/admin/stats (admins only)"""
    permission_classes = [IsAdmin]

    def get(self, request, *args, **kwargs):
        week_ago = timezone.now() - timedelta(days=7)
        stats = User.objects.aggregate(
            totalUsers=Count('id'),
            totalCustomers=Count('id', filter=Q(role=Role.CUSTOMER)),
            totalMakers=Count('id', filter=Q(role=Role.MAKER)),
            activeUsers=Count('id', filter=Q(is_active=True)),
            recentSignups=Count('id', filter=Q(created_at__gte=week_ago)),
        )
        stats['inactiveUsers'] = stats['totalUsers'] - stats['activeUsers']
        return Response(stats)


# ============================================================================
# Health
# ============================================================================

class HealthView(APIView):
    """GET /health"""
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):
        return Response({'status': 'OK', 'timestamp': timezone.now().isoformat()})

"""
Data model for ThePrintFarm marketplace.
"""

from decimal import Decimal

from django.contrib.auth.models import AbstractUser, UserManager
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinLengthValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from .validators import validate_material_list, validate_tag_list


class Role(models.TextChoices):
    CUSTOMER = 'CUSTOMER', _('Customer')
    MAKER = 'MAKER', _('Maker')
    ADMIN = 'ADMIN', _('Admin')


# Defaults applied when a profile is created for an account, either at
# registration or when an administrator changes the account's role.
DEFAULT_MAKER_PROFILE = {
    'materials': ['PLA'],
    'printer_volume': '220x220x250mm',
    'resolution': '0.2mm',
    'status': 'OFFLINE',
    'country': 'US',
}

DEFAULT_CUSTOMER_PROFILE = {
    'preferred_materials': ['PLA'],
    'country': 'US',
}


class PrintFarmUserManager(UserManager):
    """
    Manager keeping ``username`` in step with ``email``.

    Accounts are identified by email everywhere; the username column only
    exists because AbstractUser requires it.
    """

    def create_user(self, email, password=None, **extra_fields):
        email = self.normalize_email(email).lower()
        extra_fields.setdefault('username', email)
        return super().create_user(email=email, password=password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        email = self.normalize_email(email).lower()
        extra_fields.setdefault('username', email)
        extra_fields.setdefault('role', Role.ADMIN)
        return super().create_superuser(email=email, password=password, **extra_fields)


class User(AbstractUser):
    """
    Marketplace account.

    Passwords and sessions live with the external identity provider; the
    local row stores identity (email), display data and the role that drives
    authorization. Exactly one of ``maker_profile`` / ``customer_profile``
    exists for makers and customers; admins own neither.
    """

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    name = models.CharField(
        _('name'),
        max_length=50,
        validators=[MinLengthValidator(2, message=_('Name must be at least 2 characters.'))],
        help_text=_('Display name, 2-50 characters.')
    )

    role = models.CharField(
        _('role'),
        max_length=10,
        choices=Role.choices,
        default=Role.CUSTOMER,
        help_text=_('Marketplace role. Drives authorization and the attached profile.')
    )

    avatar = models.URLField(
        _('avatar'),
        max_length=500,
        blank=True,
        default='',
        help_text=_('Optional. URL of the profile picture.')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the account was created.')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the account was last updated.')
    )

    objects = PrintFarmUserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['role'], name='user_role_idx'),
            models.Index(fields=['is_active'], name='user_is_active_idx'),
        ]

    def __str__(self):
        return self.email or self.username

    def is_customer(self):
        return self.role == Role.CUSTOMER

    def is_maker(self):
        return self.role == Role.MAKER

    def is_admin(self):
        return self.role == Role.ADMIN

    def clean(self):
        super().clean()

        if self.email:
            self.email = self.email.lower()

        if not self.email:
            raise ValidationError({
                'email': _('Email address is required.')
            })

        if self.role not in Role.values:
            raise ValidationError({
                'role': _('Role must be one of CUSTOMER, MAKER or ADMIN.')
            })

    def save(self, *args, **kwargs):
        """
        Normalize the email and mirror it into ``username``.

        Updates run ``full_clean``; creation skips it so duplicate emails
        surface as the database IntegrityError that registration maps to a
        validation message.
        """
        if self.email:
            self.email = self.email.lower()
            self.username = self.email

        if self.pk is not None and not kwargs.get('update_fields'):
            self.full_clean()

        super().save(*args, **kwargs)


class MakerProfile(models.Model):
    """
    Printing capabilities and marketplace statistics of a maker.
    """

    STATUS_CHOICES = [
        ('ONLINE', 'Online'),
        ('OFFLINE', 'Offline'),
        ('BUSY', 'Busy'),
        ('AWAY', 'Away'),
    ]

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='maker_profile',
        help_text=_('Account owning this profile')
    )

    materials = models.JSONField(
        _('materials'),
        default=list,
        validators=[validate_material_list],
        help_text=_('Filament materials this maker can print with, e.g. ["PLA", "PETG"]')
    )

    printer_volume = models.CharField(
        _('printer volume'),
        max_length=50,
        help_text=_('Build volume, e.g. 220x220x250mm')
    )

    resolution = models.CharField(
        _('resolution'),
        max_length=20,
        help_text=_('Layer resolution, e.g. 0.2mm')
    )

    has_enclosure = models.BooleanField(
        _('has enclosure'),
        default=False
    )

    status = models.CharField(
        _('status'),
        max_length=10,
        choices=STATUS_CHOICES,
        default='OFFLINE'
    )

    availability = models.CharField(
        _('availability'),
        max_length=200,
        blank=True,
        default='',
        help_text=_('Free-form availability, e.g. "Weekdays after 6pm"')
    )

    hourly_rate = models.DecimalField(
        _('hourly rate'),
        max_digits=8,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'), message=_('Hourly rate cannot be negative.'))],
        help_text=_('Hourly rate in USD')
    )

    city = models.CharField(_('city'), max_length=100, blank=True, default='')
    state = models.CharField(_('state'), max_length=100, blank=True, default='')
    country = models.CharField(_('country'), max_length=100, default='US')

    completed_prints = models.PositiveIntegerField(
        _('completed prints'),
        default=0,
        help_text=_('Number of print requests this maker has completed')
    )

    rating = models.DecimalField(
        _('rating'),
        max_digits=3,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[
            MinValueValidator(Decimal('0.00'), message=_('Rating cannot be negative.')),
            MaxValueValidator(Decimal('5.00'), message=_('Rating cannot exceed 5.00.'))
        ],
    )

    total_ratings = models.PositiveIntegerField(
        _('total ratings'),
        default=0
    )

    class Meta:
        verbose_name = _('maker profile')
        verbose_name_plural = _('maker profiles')
        indexes = [
            models.Index(fields=['status'], name='maker_profile_status_idx'),
            models.Index(fields=['rating'], name='maker_profile_rating_idx'),
        ]

    def __str__(self):
        return f"Maker profile of {self.user.email}"

    def supports_material(self, material):
        return material in (self.materials or [])


class CustomerProfile(models.Model):
    """Purchasing preferences of a customer."""

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='customer_profile'
    )

    preferred_materials = models.JSONField(
        _('preferred materials'),
        default=list,
        blank=True,
        validators=[validate_material_list]
    )

    max_budget = models.DecimalField(
        _('max budget'),
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'), message=_('Budget cannot be negative.'))]
    )

    city = models.CharField(_('city'), max_length=100, blank=True, default='')
    state = models.CharField(_('state'), max_length=100, blank=True, default='')
    country = models.CharField(_('country'), max_length=100, default='US')

    class Meta:
        verbose_name = _('customer profile')
        verbose_name_plural = _('customer profiles')

    def __str__(self):
        return f"Customer profile of {self.user.email}"


class ModelListing(models.Model):
    """
    Printable 3D model imported from an external catalog (Thingiverse).
    """

    COMPLEXITY_CHOICES = [
        ('Beginner', 'Beginner'),
        ('Intermediate', 'Intermediate'),
        ('Advanced', 'Advanced'),
    ]

    thing_id = models.CharField(
        _('thing id'),
        max_length=50,
        unique=True,
        help_text=_('Identifier of the model in the source catalog')
    )

    title = models.CharField(_('title'), max_length=200)

    description = models.TextField(_('description'), blank=True, default='')

    image_url = models.URLField(_('image URL'), max_length=500)

    source_url = models.URLField(_('source URL'), max_length=500)

    tags = models.JSONField(
        _('tags'),
        default=list,
        blank=True,
        validators=[validate_tag_list]
    )

    license = models.CharField(_('license'), max_length=100, blank=True, default='')

    author_name = models.CharField(_('author name'), max_length=100, blank=True, default='')

    published_date = models.DateTimeField(_('published date'), null=True, blank=True)

    download_count = models.PositiveIntegerField(_('download count'), default=0)

    like_count = models.PositiveIntegerField(_('like count'), default=0)

    complexity = models.CharField(
        _('complexity'),
        max_length=20,
        choices=COMPLEXITY_CHOICES,
        blank=True,
        default=''
    )

    print_time = models.CharField(
        _('print time'),
        max_length=50,
        blank=True,
        default='',
        help_text=_('Estimated print time, e.g. "2h 30m"')
    )

    filament_used = models.CharField(
        _('filament used'),
        max_length=50,
        blank=True,
        default='',
        help_text=_('Estimated filament usage, e.g. "25g"')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('model listing')
        verbose_name_plural = _('model listings')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['complexity'], name='model_complexity_idx'),
            models.Index(fields=['-like_count', '-download_count'], name='model_popularity_idx'),
        ]

    def __str__(self):
        return self.title


class Favorite(models.Model):
    """A user bookmarking a model listing. At most one row per pair."""

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='favorites'
    )

    model = models.ForeignKey(
        ModelListing,
        on_delete=models.CASCADE,
        related_name='favorites'
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('favorite')
        verbose_name_plural = _('favorites')
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'model'],
                name='unique_favorite_per_user_model'
            ),
        ]

    def __str__(self):
        return f"{self.user.email} -> {self.model.title}"


class PrintRequest(models.Model):
    """
    A customer's request for a maker to print a model.

    Status moves only forward through ``VALID_TRANSITIONS``; DELIVERED,
    CANCELLED and REJECTED are terminal. Changes go through
    ``core.lifecycle`` which applies authorization, timestamps and the
    maker counter in one transaction.
    """

    STATUS_CHOICES = [
        ('REQUESTED', 'Requested'),
        ('ACCEPTED', 'Accepted'),
        ('PRINTING', 'Printing'),
        ('COMPLETED', 'Completed'),
        ('DELIVERED', 'Delivered'),
        ('CANCELLED', 'Cancelled'),
        ('REJECTED', 'Rejected'),
    ]

    URGENCY_CHOICES = [
        ('Low', 'Low'),
        ('Normal', 'Normal'),
        ('High', 'High'),
    ]

    VALID_TRANSITIONS = {
        'REQUESTED': ['ACCEPTED', 'REJECTED', 'CANCELLED'],
        'ACCEPTED': ['PRINTING', 'CANCELLED'],
        'PRINTING': ['COMPLETED', 'CANCELLED'],
        'COMPLETED': ['DELIVERED'],
        'DELIVERED': [],  # Terminal states
        'CANCELLED': [],
        'REJECTED': [],
    }

    ACTIVE_STATUSES = ['REQUESTED', 'ACCEPTED', 'PRINTING']

    # Timestamp stamped when a request enters the given status.
    STATUS_TIMESTAMPS = {
        'ACCEPTED': 'accepted_at',
        'PRINTING': 'started_at',
        'COMPLETED': 'completed_at',
        'DELIVERED': 'delivered_at',
    }

    model = models.ForeignKey(
        ModelListing,
        on_delete=models.CASCADE,
        related_name='print_requests',
        help_text=_('Model to print')
    )

    customer = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='print_requests',
        help_text=_('Customer who requested the print')
    )

    maker = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='assigned_prints',
        help_text=_('Maker assigned to the print')
    )

    quantity = models.PositiveSmallIntegerField(
        _('quantity'),
        default=1,
        validators=[
            MinValueValidator(1, message=_('Quantity must be at least 1.')),
            MaxValueValidator(10, message=_('Quantity cannot exceed 10.'))
        ]
    )

    material = models.CharField(_('material'), max_length=50)

    color = models.CharField(_('color'), max_length=50, blank=True, default='')

    notes = models.TextField(_('notes'), max_length=500, blank=True, default='')

    urgency = models.CharField(
        _('urgency'),
        max_length=10,
        choices=URGENCY_CHOICES,
        default='Normal'
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=STATUS_CHOICES,
        default='REQUESTED'
    )

    quoted_price = models.DecimalField(
        _('quoted price'),
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'), message=_('Price cannot be negative.'))]
    )

    final_price = models.DecimalField(
        _('final price'),
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal('0.00'), message=_('Price cannot be negative.'))]
    )

    accepted_at = models.DateTimeField(_('accepted at'), null=True, blank=True)
    started_at = models.DateTimeField(_('started at'), null=True, blank=True)
    completed_at = models.DateTimeField(_('completed at'), null=True, blank=True)
    delivered_at = models.DateTimeField(_('delivered at'), null=True, blank=True)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('print request')
        verbose_name_plural = _('print requests')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer', 'status'], name='print_request_customer_idx'),
            models.Index(fields=['maker', 'status'], name='print_request_maker_idx'),
            models.Index(fields=['status'], name='print_request_status_idx'),
        ]

    def __str__(self):
        return f"Print request {self.id} ({self.status})"

    def clean(self):
        super().clean()

        if self.customer_id and self.maker_id and self.customer_id == self.maker_id:
            raise ValidationError({
                'maker': _('A user cannot request a print from themselves.')
            })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def can_transition_to(self, new_status):
        """
        Check if a transition from the current status is allowed.

        Unlike looser state machines, staying in the same status is not a
        valid transition: every accepted call moves the request forward.
        """
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])

    def is_active(self):
        return self.status in self.ACTIVE_STATUSES


class Message(models.Model):
    """Direct message between two accounts. Only ``is_read`` ever changes."""

    sender = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='messages_sent'
    )

    receiver = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='messages_received'
    )

    content = models.TextField(
        _('content'),
        max_length=1000,
        validators=[MinLengthValidator(1, message=_('Message cannot be empty.'))]
    )

    model_url = models.URLField(
        _('model URL'),
        max_length=500,
        blank=True,
        default='',
        help_text=_('Optional link to a model discussed in the message')
    )

    is_read = models.BooleanField(_('read'), default=False)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = _('message')
        verbose_name_plural = _('messages')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['sender', 'receiver', '-created_at'], name='message_thread_idx'),
            models.Index(fields=['receiver', 'is_read'], name='message_unread_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(sender=models.F('receiver')),
                name='message_sender_not_receiver'
            ),
        ]

    def __str__(self):
        return f"Message {self.id} from {self.sender_id} to {self.receiver_id}"


class Announcement(models.Model):
    """Site-wide notice managed by administrators."""

    TYPE_CHOICES = [
        ('INFO', 'Info'),
        ('WARNING', 'Warning'),
        ('SUCCESS', 'Success'),
        ('ERROR', 'Error'),
    ]

    title = models.CharField(
        _('title'),
        max_length=100,
        validators=[MinLengthValidator(3, message=_('Title must be at least 3 characters.'))]
    )

    content = models.TextField(
        _('content'),
        max_length=2000,
        validators=[MinLengthValidator(10, message=_('Content must be at least 10 characters.'))]
    )

    type = models.CharField(
        _('type'),
        max_length=10,
        choices=TYPE_CHOICES,
        default='INFO'
    )

    priority = models.PositiveSmallIntegerField(
        _('priority'),
        default=0,
        validators=[MaxValueValidator(10, message=_('Priority cannot exceed 10.'))],
        help_text=_('0-10, higher is shown first')
    )

    is_active = models.BooleanField(_('active'), default=True)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('announcement')
        verbose_name_plural = _('announcements')
        ordering = ['-priority', '-created_at']
        indexes = [
            models.Index(fields=['is_active', '-priority'], name='announcement_active_idx'),
        ]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

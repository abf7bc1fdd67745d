import core.models
import core.validators
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, help_text='Required. Enter a valid email address.', max_length=254, unique=True, verbose_name='email address')),
                ('name', models.CharField(help_text='Display name, 2-50 characters.', max_length=50, validators=[django.core.validators.MinLengthValidator(2, message='Name must be at least 2 characters.')], verbose_name='name')),
                ('role', models.CharField(choices=[('CUSTOMER', 'Customer'), ('MAKER', 'Maker'), ('ADMIN', 'Admin')], default='CUSTOMER', help_text='Marketplace role. Drives authorization and the attached profile.', max_length=10, verbose_name='role')),
                ('avatar', models.URLField(blank=True, default='', help_text='Optional. URL of the profile picture.', max_length=500, verbose_name='avatar')),
                ('created_at', models.DateTimeField(auto_now_add=True, help_text='Timestamp when the account was created.', verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the account was last updated.', verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['role'], name='user_role_idx'),
                    models.Index(fields=['is_active'], name='user_is_active_idx'),
                ],
            },
            managers=[
                ('objects', core.models.PrintFarmUserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Announcement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=100, validators=[django.core.validators.MinLengthValidator(3, message='Title must be at least 3 characters.')], verbose_name='title')),
                ('content', models.TextField(max_length=2000, validators=[django.core.validators.MinLengthValidator(10, message='Content must be at least 10 characters.')], verbose_name='content')),
                ('type', models.CharField(choices=[('INFO', 'Info'), ('WARNING', 'Warning'), ('SUCCESS', 'Success'), ('ERROR', 'Error')], default='INFO', max_length=10, verbose_name='type')),
                ('priority', models.PositiveSmallIntegerField(default=0, help_text='0-10, higher is shown first', validators=[django.core.validators.MaxValueValidator(10, message='Priority cannot exceed 10.')], verbose_name='priority')),
                ('is_active', models.BooleanField(default=True, verbose_name='active')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
            ],
            options={
                'verbose_name': 'announcement',
                'verbose_name_plural': 'announcements',
                'ordering': ['-priority', '-created_at'],
                'indexes': [
                    models.Index(fields=['is_active', '-priority'], name='announcement_active_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ModelListing',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('thing_id', models.CharField(help_text='Identifier of the model in the source catalog', max_length=50, unique=True, verbose_name='thing id')),
                ('title', models.CharField(max_length=200, verbose_name='title')),
                ('description', models.TextField(blank=True, default='', verbose_name='description')),
                ('image_url', models.URLField(max_length=500, verbose_name='image URL')),
                ('source_url', models.URLField(max_length=500, verbose_name='source URL')),
                ('tags', models.JSONField(blank=True, default=list, validators=[core.validators.validate_tag_list], verbose_name='tags')),
                ('license', models.CharField(blank=True, default='', max_length=100, verbose_name='license')),
                ('author_name', models.CharField(blank=True, default='', max_length=100, verbose_name='author name')),
                ('published_date', models.DateTimeField(blank=True, null=True, verbose_name='published date')),
                ('download_count', models.PositiveIntegerField(default=0, verbose_name='download count')),
                ('like_count', models.PositiveIntegerField(default=0, verbose_name='like count')),
                ('complexity', models.CharField(blank=True, choices=[('Beginner', 'Beginner'), ('Intermediate', 'Intermediate'), ('Advanced', 'Advanced')], default='', max_length=20, verbose_name='complexity')),
                ('print_time', models.CharField(blank=True, default='', help_text='Estimated print time, e.g. "2h 30m"', max_length=50, verbose_name='print time')),
                ('filament_used', models.CharField(blank=True, default='', help_text='Estimated filament usage, e.g. "25g"', max_length=50, verbose_name='filament used')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
            ],
            options={
                'verbose_name': 'model listing',
                'verbose_name_plural': 'model listings',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['complexity'], name='model_complexity_idx'),
                    models.Index(fields=['-like_count', '-download_count'], name='model_popularity_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CustomerProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('preferred_materials', models.JSONField(blank=True, default=list, validators=[core.validators.validate_material_list], verbose_name='preferred materials')),
                ('max_budget', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0.00'), message='Budget cannot be negative.')], verbose_name='max budget')),
                ('city', models.CharField(blank=True, default='', max_length=100, verbose_name='city')),
                ('state', models.CharField(blank=True, default='', max_length=100, verbose_name='state')),
                ('country', models.CharField(default='US', max_length=100, verbose_name='country')),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='customer_profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'customer profile',
                'verbose_name_plural': 'customer profiles',
            },
        ),
        migrations.CreateModel(
            name='MakerProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('materials', models.JSONField(default=list, help_text='Filament materials this maker can print with, e.g. ["PLA", "PETG"]', validators=[core.validators.validate_material_list], verbose_name='materials')),
                ('printer_volume', models.CharField(help_text='Build volume, e.g. 220x220x250mm', max_length=50, verbose_name='printer volume')),
                ('resolution', models.CharField(help_text='Layer resolution, e.g. 0.2mm', max_length=20, verbose_name='resolution')),
                ('has_enclosure', models.BooleanField(default=False, verbose_name='has enclosure')),
                ('status', models.CharField(choices=[('ONLINE', 'Online'), ('OFFLINE', 'Offline'), ('BUSY', 'Busy'), ('AWAY', 'Away')], default='OFFLINE', max_length=10, verbose_name='status')),
                ('availability', models.CharField(blank=True, default='', help_text='Free-form availability, e.g. "Weekdays after 6pm"', max_length=200, verbose_name='availability')),
                ('hourly_rate', models.DecimalField(blank=True, decimal_places=2, help_text='Hourly rate in USD', max_digits=8, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0.00'), message='Hourly rate cannot be negative.')], verbose_name='hourly rate')),
                ('city', models.CharField(blank=True, default='', max_length=100, verbose_name='city')),
                ('state', models.CharField(blank=True, default='', max_length=100, verbose_name='state')),
                ('country', models.CharField(default='US', max_length=100, verbose_name='country')),
                ('completed_prints', models.PositiveIntegerField(default=0, help_text='Number of print requests this maker has completed', verbose_name='completed prints')),
                ('rating', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=3, validators=[django.core.validators.MinValueValidator(Decimal('0.00'), message='Rating cannot be negative.'), django.core.validators.MaxValueValidator(Decimal('5.00'), message='Rating cannot exceed 5.00.')], verbose_name='rating')),
                ('total_ratings', models.PositiveIntegerField(default=0, verbose_name='total ratings')),
                ('user', models.OneToOneField(help_text='Account owning this profile', on_delete=django.db.models.deletion.CASCADE, related_name='maker_profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'maker profile',
                'verbose_name_plural': 'maker profiles',
                'indexes': [
                    models.Index(fields=['status'], name='maker_profile_status_idx'),
                    models.Index(fields=['rating'], name='maker_profile_rating_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Favorite',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='favorites', to=settings.AUTH_USER_MODEL)),
                ('model', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='favorites', to='core.modellisting')),
            ],
            options={
                'verbose_name': 'favorite',
                'verbose_name_plural': 'favorites',
                'ordering': ['-created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'model'), name='unique_favorite_per_user_model'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Message',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('content', models.TextField(max_length=1000, validators=[django.core.validators.MinLengthValidator(1, message='Message cannot be empty.')], verbose_name='content')),
                ('model_url', models.URLField(blank=True, default='', help_text='Optional link to a model discussed in the message', max_length=500, verbose_name='model URL')),
                ('is_read', models.BooleanField(default=False, verbose_name='read')),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, verbose_name='created at')),
                ('sender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages_sent', to=settings.AUTH_USER_MODEL)),
                ('receiver', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages_received', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'message',
                'verbose_name_plural': 'messages',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['sender', 'receiver', '-created_at'], name='message_thread_idx'),
                    models.Index(fields=['receiver', 'is_read'], name='message_unread_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('sender', models.F('receiver')), _negated=True), name='message_sender_not_receiver'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PrintRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveSmallIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1, message='Quantity must be at least 1.'), django.core.validators.MaxValueValidator(10, message='Quantity cannot exceed 10.')], verbose_name='quantity')),
                ('material', models.CharField(max_length=50, verbose_name='material')),
                ('color', models.CharField(blank=True, default='', max_length=50, verbose_name='color')),
                ('notes', models.TextField(blank=True, default='', max_length=500, verbose_name='notes')),
                ('urgency', models.CharField(choices=[('Low', 'Low'), ('Normal', 'Normal'), ('High', 'High')], default='Normal', max_length=10, verbose_name='urgency')),
                ('status', models.CharField(choices=[('REQUESTED', 'Requested'), ('ACCEPTED', 'Accepted'), ('PRINTING', 'Printing'), ('COMPLETED', 'Completed'), ('DELIVERED', 'Delivered'), ('CANCELLED', 'Cancelled'), ('REJECTED', 'Rejected')], default='REQUESTED', max_length=20, verbose_name='status')),
                ('quoted_price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0.00'), message='Price cannot be negative.')], verbose_name='quoted price')),
                ('final_price', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0.00'), message='Price cannot be negative.')], verbose_name='final price')),
                ('accepted_at', models.DateTimeField(blank=True, null=True, verbose_name='accepted at')),
                ('started_at', models.DateTimeField(blank=True, null=True, verbose_name='started at')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='completed at')),
                ('delivered_at', models.DateTimeField(blank=True, null=True, verbose_name='delivered at')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('model', models.ForeignKey(help_text='Model to print', on_delete=django.db.models.deletion.CASCADE, related_name='print_requests', to='core.modellisting')),
                ('customer', models.ForeignKey(help_text='Customer who requested the print', on_delete=django.db.models.deletion.CASCADE, related_name='print_requests', to=settings.AUTH_USER_MODEL)),
                ('maker', models.ForeignKey(help_text='Maker assigned to the print', on_delete=django.db.models.deletion.CASCADE, related_name='assigned_prints', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'print request',
                'verbose_name_plural': 'print requests',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['customer', 'status'], name='print_request_customer_idx'),
                    models.Index(fields=['maker', 'status'], name='print_request_maker_idx'),
                    models.Index(fields=['status'], name='print_request_status_idx'),
                ],
            },
        ),
    ]

import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('user_ref', models.CharField(blank=True, db_index=True, default='', max_length=64)),
                ('customer_name', models.CharField(max_length=150)),
                ('customer_email', models.EmailField(max_length=254)),
                ('customer_phone', models.CharField(blank=True, max_length=32, null=True)),
                ('package_name', models.CharField(max_length=100)),
                ('amount', models.PositiveBigIntegerField()),
                ('currency', models.CharField(default='IDR', max_length=8)),
                ('gateway', models.CharField(choices=[('midtrans', 'Midtrans'), ('xendit', 'Xendit')], default='midtrans', max_length=16)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('failed', 'Failed'), ('expired', 'Expired'), ('cancelled', 'Cancelled'), ('refunded', 'Refunded')], db_index=True, default='pending', max_length=32)),
                ('payment_method', models.CharField(blank=True, max_length=64, null=True)),
                ('provider_transaction_id', models.CharField(blank=True, db_index=True, max_length=128, null=True)),
                ('provider_checkout_url', models.URLField(blank=True, max_length=500, null=True)),
                ('last_notification', models.JSONField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('expired_at', models.DateTimeField(blank=True, null=True)),
                ('package', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='orders', to='catalog.pricingpackage')),
            ],
            options={
                'ordering': ('-created_at',),
            },
        ),
    ]

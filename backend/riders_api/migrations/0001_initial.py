import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='RiderRecord',
            fields=[
                ('id', models.CharField(max_length=64, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('email', models.EmailField(blank=True, max_length=254, null=True, unique=True)),
                ('phone', models.CharField(blank=True, max_length=32)),
                ('status', models.CharField(choices=[('available', 'Available'), ('busy', 'Busy'), ('offline', 'Offline')], db_index=True, default='available', max_length=20)),
                ('current_lat', models.FloatField(blank=True, null=True)),
                ('current_lon', models.FloatField(blank=True, null=True)),
                ('location_updated_at', models.DateTimeField(blank=True, null=True)),
                ('service_areas', models.JSONField(blank=True, default=list)),
                ('rating', models.FloatField(default=0.0)),
                ('completed_deliveries', models.PositiveIntegerField(default=0)),
                ('max_weight_kg', models.FloatField(default=0.0)),
                ('max_dimensions', models.JSONField(blank=True, null=True)),
            ],
        ),
        migrations.CreateModel(
            name='DeliveryOrder',
            fields=[
                ('id', models.CharField(max_length=64, primary_key=True, serialize=False)),
                ('pickup_lat', models.FloatField(blank=True, null=True)),
                ('pickup_lon', models.FloatField(blank=True, null=True)),
                ('distance_category', models.CharField(choices=[('local', 'Local'), ('intercity', 'Intercity'), ('longDistance', 'Long distance')], default='local', max_length=20)),
                ('parcel_weight_kg', models.FloatField(blank=True, null=True)),
                ('status', models.CharField(default='Pending Rider Assignment', max_length=64)),
                ('declined_by', models.JSONField(blank=True, default=list)),
                ('needs_manual_assignment', models.BooleanField(default=False)),
                ('expected_pickup_time', models.DateTimeField(blank=True, null=True)),
                ('expected_delivery_time', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_rider', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='orders', to='riders_api.riderrecord')),
            ],
        ),
        migrations.CreateModel(
            name='OrderStatusHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(max_length=64)),
                ('note', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_history', to='riders_api.deliveryorder')),
            ],
            options={
                'ordering': ['created_at', 'id'],
            },
        ),
    ]

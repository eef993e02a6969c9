import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='RawMaterial',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True, default='')),
                ('category', models.CharField(choices=[('MEAT', 'Meat'), ('VEGETABLES', 'Vegetables'), ('DAIRY', 'Dairy'), ('BEVERAGES', 'Beverages'), ('SPICES', 'Spices'), ('GRAINS', 'Grains'), ('CLEANING', 'Cleaning'), ('OTHER', 'Other')], default='OTHER', max_length=20)),
                ('unit', models.CharField(choices=[('KG', 'Kilograms'), ('GRAMS', 'Grams'), ('LITERS', 'Liters'), ('MILLILITERS', 'Milliliters'), ('PIECES', 'Pieces'), ('PACKS', 'Packs'), ('BOXES', 'Boxes'), ('BOTTLES', 'Bottles'), ('CANS', 'Cans')], max_length=20)),
                ('units_per_pack', models.DecimalField(blank=True, decimal_places=6, help_text='Base units contained in one pack/box', max_digits=15, null=True)),
                ('base_unit', models.CharField(choices=[('KG', 'Kilograms'), ('GRAMS', 'Grams'), ('LITERS', 'Liters'), ('MILLILITERS', 'Milliliters'), ('PIECES', 'Pieces'), ('PACKS', 'Packs'), ('BOXES', 'Boxes'), ('BOTTLES', 'Bottles'), ('CANS', 'Cans')], default='PIECES', max_length=20)),
                ('unit_cost', models.DecimalField(decimal_places=4, default=0, max_digits=15)),
                ('supplier', models.CharField(blank=True, default='', max_length=200)),
                ('min_stock_level', models.DecimalField(decimal_places=6, default=0, max_digits=18)),
                ('max_stock_level', models.DecimalField(decimal_places=6, default=0, max_digits=18)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['name'],
                'constraints': [models.CheckConstraint(condition=models.Q(('unit_cost__gte', 0)), name='raw_material_unit_cost_non_negative')],
            },
        ),
        migrations.CreateModel(
            name='Section',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('name', models.CharField(max_length=100)),
                ('description', models.TextField(blank=True, default='')),
                ('type', models.CharField(choices=[('KITCHEN', 'Kitchen'), ('BAR', 'Bar'), ('STORAGE', 'Storage'), ('PREP', 'Prep Area'), ('SERVICE', 'Service')], max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('manager', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='managed_sections', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
    ]

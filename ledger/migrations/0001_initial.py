import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='LedgerSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('count_losses_as_used', models.BooleanField(default=True)),
                ('require_ledger_movement', models.BooleanField(default=True)),
                ('lot_selection', models.CharField(choices=[('FIFO', 'First In, First Out'), ('FEFO', 'First Expired, First Out')], default='FIFO', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'ledger settings',
                'verbose_name_plural': 'ledger settings',
            },
        ),
        migrations.CreateModel(
            name='OrderCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('last_order_number', models.PositiveBigIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='StockEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('quantity', models.DecimalField(decimal_places=6, max_digits=18)),
                ('unit_cost', models.DecimalField(decimal_places=4, default=0, max_digits=15)),
                ('total_cost', models.DecimalField(decimal_places=4, default=0, max_digits=18)),
                ('supplier', models.CharField(blank=True, default='', max_length=200)),
                ('batch_number', models.CharField(blank=True, default='', max_length=100)),
                ('expiry_date', models.DateField(blank=True, db_index=True, null=True)),
                ('received_date', models.DateTimeField(default=django.utils.timezone.now)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('raw_material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='stock_entries', to='catalog.rawmaterial')),
                ('received_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='received_stock_entries', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name_plural': 'stock entries',
                'ordering': ['received_date', 'id'],
                'indexes': [models.Index(fields=['raw_material', 'received_date'], name='stock_entry_material_date_idx')],
                'constraints': [models.CheckConstraint(condition=models.Q(('quantity__gt', 0)), name='stock_entry_quantity_positive')],
            },
        ),
        migrations.CreateModel(
            name='StockMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('type', models.CharField(choices=[('IN', 'Stock In'), ('OUT', 'Stock Out'), ('TRANSFER', 'Transfer'), ('EXPIRED', 'Expired'), ('DAMAGED', 'Damaged')], db_index=True, max_length=20)),
                ('quantity', models.DecimalField(decimal_places=6, max_digits=18)),
                ('reason', models.TextField(blank=True, default='')),
                ('reference_id', models.CharField(blank=True, db_index=True, max_length=50, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('from_section', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='outgoing_movements', to='catalog.section')),
                ('to_section', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='incoming_movements', to='catalog.section')),
                ('performed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='stock_movements', to=settings.AUTH_USER_MODEL)),
                ('stock_entry', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='ledger.stockentry')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['stock_entry', 'type'], name='stock_move_entry_type_idx'),
                    models.Index(fields=['type', 'created_at'], name='stock_move_type_created_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('quantity__gt', 0)), name='stock_movement_quantity_positive'),
                    models.CheckConstraint(condition=models.Q(models.Q(('type', 'TRANSFER'), _negated=True), ('from_section__isnull', False), ('to_section__isnull', False), _connector='OR'), name='stock_movement_transfer_has_section'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SectionInventory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('quantity', models.DecimalField(decimal_places=6, default=0, max_digits=18)),
                ('reserved_quantity', models.DecimalField(decimal_places=6, default=0, max_digits=18)),
                ('min_level', models.DecimalField(blank=True, decimal_places=6, max_digits=18, null=True)),
                ('max_level', models.DecimalField(blank=True, decimal_places=6, max_digits=18, null=True)),
                ('last_updated', models.DateTimeField(default=django.utils.timezone.now)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('raw_material', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='section_inventory', to='catalog.rawmaterial')),
                ('section', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='inventory', to='catalog.section')),
            ],
            options={
                'verbose_name_plural': 'section inventory',
                'constraints': [models.CheckConstraint(condition=models.Q(('quantity__gte', 0)), name='section_inventory_quantity_non_negative')],
                'unique_together': {('section', 'raw_material')},
            },
        ),
        migrations.CreateModel(
            name='SectionConsumption',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uuid', models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ('quantity', models.DecimalField(decimal_places=6, max_digits=18)),
                ('consumed_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('reason', models.TextField(blank=True, default='')),
                ('order_id', models.CharField(blank=True, db_index=True, max_length=50, null=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('ledger_reconciled', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('consumed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='section_consumptions', to=settings.AUTH_USER_MODEL)),
                ('raw_material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='consumptions', to='catalog.rawmaterial')),
                ('section', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='consumptions', to='catalog.section')),
            ],
            options={
                'ordering': ['-consumed_date', '-id'],
                'indexes': [models.Index(fields=['section', 'consumed_date'], name='consumption_section_date_idx')],
            },
        ),
    ]

import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('catalog', '0001_initial'),
        ('jobcards', '0001_initial'),
        ('locations', '0001_initial'),
        ('purchasing', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='PartsIssueRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('issue_number', models.CharField(editable=False, max_length=50, unique=True)),
                ('service_center_name', models.CharField(blank=True, max_length=200)),
                ('status', models.CharField(choices=[('PENDING_SC_APPROVAL', 'Pending Service Center Approval'), ('SC_APPROVED', 'Service Center Approved'), ('PENDING_ADMIN_APPROVAL', 'Pending Admin Approval'), ('ADMIN_APPROVED', 'Admin Approved'), ('DISPATCHED', 'Dispatched'), ('COMPLETED', 'Completed'), ('SC_REJECTED', 'Service Center Rejected'), ('ADMIN_REJECTED', 'Admin Rejected')], db_index=True, default='PENDING_SC_APPROVAL', max_length=30)),
                ('notes', models.TextField(blank=True)),
                ('transport_details', models.JSONField(blank=True, default=dict)),
                ('total_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('issued_at', models.DateTimeField(blank=True, null=True)),
                ('sc_manager_approved', models.BooleanField(default=False)),
                ('sc_manager_approved_at', models.DateTimeField(blank=True, null=True)),
                ('sc_manager_rejected', models.BooleanField(default=False)),
                ('sc_manager_rejected_at', models.DateTimeField(blank=True, null=True)),
                ('sc_manager_rejection_reason', models.TextField(blank=True)),
                ('sent_to_admin_at', models.DateTimeField(blank=True, null=True)),
                ('resend_count', models.PositiveIntegerField(default=0)),
                ('admin_approved', models.BooleanField(default=False)),
                ('admin_approved_at', models.DateTimeField(blank=True, null=True)),
                ('admin_rejected', models.BooleanField(default=False)),
                ('admin_rejected_at', models.DateTimeField(blank=True, null=True)),
                ('admin_rejection_reason', models.TextField(blank=True)),
                ('dispatched_at', models.DateTimeField(blank=True, null=True)),
                ('received_at', models.DateTimeField(blank=True, null=True)),
                ('version', models.PositiveIntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('admin_approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('admin_rejected_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('issued_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='requested_parts_issues', to=settings.AUTH_USER_MODEL)),
                ('job_card', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='parts_issues', to='jobcards.jobcard')),
                ('purchase_order', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='parts_issues', to='purchasing.purchaseorder')),
                ('received_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('sc_manager_approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('sc_manager_rejected_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('service_center', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='parts_issues', to='locations.servicecenter')),
            ],
            options={
                'db_table': 'parts_issue_requests',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['service_center', 'status'], name='idx_pi_sc_status'),
                    models.Index(fields=['-created_at'], name='idx_pi_created'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PartsIssueItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('part_name', models.CharField(max_length=200)),
                ('part_number', models.CharField(max_length=100)),
                ('hsn_code', models.CharField(blank=True, max_length=20)),
                ('requested_qty', models.PositiveIntegerField()),
                ('approved_qty', models.PositiveIntegerField(default=0)),
                ('issued_qty', models.PositiveIntegerField(default=0)),
                ('received_qty', models.PositiveIntegerField(default=0)),
                ('is_warranty', models.BooleanField(default=False)),
                ('serial_number', models.CharField(blank=True, max_length=100)),
                ('unit_price', models.DecimalField(decimal_places=2, max_digits=12)),
                ('total_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('sub_po_number', models.CharField(blank=True, editable=False, max_length=50, null=True, unique=True)),
                ('issue', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='parts_issues.partsissuerequest')),
                ('part', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='issue_items', to='catalog.part')),
            ],
            options={
                'db_table': 'parts_issue_items',
                'ordering': ['id'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('approved_qty__lte', models.F('requested_qty'))), name='chk_pi_item_approved_lte_requested'),
                    models.CheckConstraint(condition=models.Q(('issued_qty__lte', models.F('approved_qty'))), name='chk_pi_item_issued_lte_approved'),
                    models.CheckConstraint(condition=models.Q(('received_qty__lte', models.F('issued_qty'))), name='chk_pi_item_received_lte_issued'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PartsIssueDispatch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('idempotency_key', models.CharField(blank=True, max_length=100, null=True)),
                ('dispatched_at', models.DateTimeField(auto_now_add=True)),
                ('transport_details', models.JSONField(blank=True, default=dict)),
                ('dispatched_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='parts_dispatches', to=settings.AUTH_USER_MODEL)),
                ('issue', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='dispatches', to='parts_issues.partsissuerequest')),
            ],
            options={
                'db_table': 'parts_issue_dispatches',
                'ordering': ['dispatched_at', 'id'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('idempotency_key__isnull', False)), fields=('issue', 'idempotency_key'), name='uniq_pi_dispatch_idempotency_key'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PartsIssueDispatchLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveIntegerField()),
                ('sub_po_number', models.CharField(max_length=50)),
                ('dispatch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='lines', to='parts_issues.partsissuedispatch')),
                ('item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='dispatch_lines', to='parts_issues.partsissueitem')),
            ],
            options={
                'db_table': 'parts_issue_dispatch_lines',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='PartsIssueStatusHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=30)),
                ('from_status', models.CharField(blank=True, max_length=30)),
                ('to_status', models.CharField(max_length=30)),
                ('note', models.TextField(blank=True)),
                ('changes', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('actor', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('issue', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='history', to='parts_issues.partsissuerequest')),
            ],
            options={
                'db_table': 'parts_issue_status_history',
                'ordering': ['created_at', 'id'],
            },
        ),
    ]

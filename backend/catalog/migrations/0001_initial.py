from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Part',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('part_number', models.CharField(db_index=True, max_length=100, unique=True)),
                ('name', models.CharField(db_index=True, max_length=200)),
                ('hsn_code', models.CharField(blank=True, max_length=20)),
                ('category', models.CharField(blank=True, db_index=True, max_length=100)),
                ('unit', models.CharField(choices=[('pcs', 'Pieces'), ('set', 'Set'), ('ltr', 'Litre'), ('kg', 'Kilogram'), ('mtr', 'Metre')], default='pcs', max_length=10)),
                ('unit_price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('description', models.TextField(blank=True)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'parts',
                'ordering': ['name'],
            },
        ),
    ]

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='DocumentSequence',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('document_type', models.CharField(choices=[('job_card', 'Job Card'), ('parts_issue', 'Parts Issue Request'), ('sub_po', 'Sub Purchase Order'), ('purchase_order', 'Purchase Order')], max_length=30)),
                ('location_code', models.CharField(max_length=20)),
                ('year', models.PositiveIntegerField()),
                ('month', models.PositiveSmallIntegerField()),
                ('current_value', models.PositiveIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'document_sequences',
            },
        ),
        migrations.AddConstraint(
            model_name='documentsequence',
            constraint=models.UniqueConstraint(fields=('document_type', 'location_code', 'year', 'month'), name='uniq_document_sequence_scope'),
        ),
    ]

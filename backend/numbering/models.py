from django.db import models


class DocumentSequence(models.Model):
    """Last sequence number handed out per (document type, location, year, month)"""
    DOCUMENT_TYPE_CHOICES = [
        ('job_card', 'Job Card'),
        ('parts_issue', 'Parts Issue Request'),
        ('sub_po', 'Sub Purchase Order'),
        ('purchase_order', 'Purchase Order'),
    ]

    document_type = models.CharField(max_length=30, choices=DOCUMENT_TYPE_CHOICES)
    location_code = models.CharField(max_length=20)
    year = models.PositiveIntegerField()
    month = models.PositiveSmallIntegerField()
    current_value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.document_type} {self.location_code}-{self.year}-{self.month:02d}: {self.current_value}"

    class Meta:
        db_table = 'document_sequences'
        constraints = [
            models.UniqueConstraint(
                fields=['document_type', 'location_code', 'year', 'month'],
                name='uniq_document_sequence_scope',
            ),
        ]

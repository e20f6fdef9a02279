import logging

from django.db import transaction

from backend.numbering.allocator import JOB_CARD, allocate_number
from .models import JobCard

logger = logging.getLogger(__name__)


@transaction.atomic
def create_job_card(service_center, created_by=None, **fields):
    """
    Create a job card with the next number for its service center.

    The location code always comes from ``service_center``; any number or code
    the caller passes in ``fields`` is discarded.
    """
    fields.pop('job_card_number', None)
    fields.pop('service_center_code', None)
    job_card_number = allocate_number(JOB_CARD, service_center.code)
    job_card = JobCard.objects.create(
        job_card_number=job_card_number,
        service_center=service_center,
        created_by=created_by,
        **fields
    )
    logger.info(f"Job card {job_card_number} created for {service_center.code}")
    return job_card

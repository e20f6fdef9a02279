"""
Test suite for job cards
"""
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from backend.core.roles import CENTRAL_ADMIN, SC_MANAGER, TECHNICIAN
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.jobcards.models import JobCard


class JobCardAPITests(TestCase):
    """Test job card numbering and visibility"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.service_center = TestDataFactory.create_service_center(name='Main Workshop', code='SC001')
        self.other_center = TestDataFactory.create_service_center(name='North Workshop', code='SC002')
        self.technician = TestDataFactory.create_user(roles=[TECHNICIAN], service_center=self.service_center)
        self.admin = TestDataFactory.create_user(roles=[CENTRAL_ADMIN])

    def month_prefix(self, code):
        now = timezone.localtime()
        return f'{code}-{now.year}-{now.month:02d}'

    def test_consecutive_numbers_ignore_client_values(self):
        self.client.authenticate_user(self.technician)
        payload = {
            'customer_name': 'Ravi Kumar',
            'vehicle_number': 'ka01ab1234',
            'job_card_number': 'HACKED-0001',
            'service_center_code': 'ZZZ',
        }
        first = self.client.post('/api/v1/job-cards/', payload, format='json')
        second = self.client.post('/api/v1/job-cards/', payload, format='json')

        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(first.data['job_card_number'], f"{self.month_prefix('SC001')}-0001")
        self.assertEqual(second.data['job_card_number'], f"{self.month_prefix('SC001')}-0002")
        self.assertEqual(first.data['vehicle_number'], 'KA01AB1234')

    def test_workshop_user_forced_to_own_center(self):
        self.client.authenticate_user(self.technician)
        response = self.client.post('/api/v1/job-cards/', {
            'customer_name': 'Anita', 'vehicle_number': 'KA02CD5678', 'service_center': self.other_center.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['service_center_code'], 'SC001')

    def test_central_user_chooses_center(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/job-cards/', {
            'customer_name': 'Anita', 'vehicle_number': 'KA02CD5678', 'service_center': self.other_center.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['job_card_number'].startswith(self.month_prefix('SC002')))

    def test_inactive_center_rejected(self):
        self.other_center.is_active = False
        self.other_center.save()
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/job-cards/', {
            'customer_name': 'Anita', 'vehicle_number': 'KA02CD5678', 'service_center': self.other_center.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_visibility_is_scoped_to_service_center(self):
        own = TestDataFactory.create_job_card(self.service_center, vehicle_number='KA01AA0001')
        other = TestDataFactory.create_job_card(self.other_center, vehicle_number='KA01AA0002')

        self.client.authenticate_user(self.technician)
        response = self.client.get('/api/v1/job-cards/')
        self.assertEqual([row['id'] for row in response.data['results']], [own.id])
        self.assertEqual(self.client.get(f'/api/v1/job-cards/{other.id}/').status_code, status.HTTP_404_NOT_FOUND)

        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/job-cards/', {'search': 'AA0002'})
        self.assertEqual([row['id'] for row in response.data['results']], [other.id])

    def test_update_keeps_number_and_center(self):
        job_card = TestDataFactory.create_job_card(self.service_center)
        manager = TestDataFactory.create_user(roles=[SC_MANAGER], service_center=self.service_center)
        self.client.authenticate_user(manager)
        response = self.client.patch(f'/api/v1/job-cards/{job_card.id}/', {
            'status': 'in_progress', 'job_card_number': 'X', 'service_center': self.other_center.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        job_card.refresh_from_db()
        self.assertEqual(job_card.status, 'in_progress')
        self.assertEqual(job_card.service_center, self.service_center)
        self.assertEqual(job_card.number.location_code, 'SC001')

"""
Test suite for the parts catalog
"""
from decimal import Decimal
from django.test import TestCase
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.roles import INVENTORY_MANAGER, TECHNICIAN
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.catalog.models import Part


class PartAPITests(TestCase):
    """Test part listing, search and maintenance"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.storekeeper = TestDataFactory.create_user(roles=[INVENTORY_MANAGER])
        self.technician = TestDataFactory.create_user(roles=[TECHNICIAN])
        self.brake_pad = TestDataFactory.create_part(part_number='BP-001', name='Front Brake Pad', stock=20)
        self.filter = TestDataFactory.create_part(part_number='OF-010', name='Oil Filter')
        self.retired = TestDataFactory.create_part(part_number='OLD-1', name='Old Brake Shoe', is_active=False)

    def test_list_defaults_to_active_parts(self):
        self.client.authenticate_user(self.technician)
        response = self.client.get('/api/v1/parts/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual({row['part_number'] for row in response.data['results']}, {'BP-001', 'OF-010'})

    def test_multi_word_search(self):
        self.client.authenticate_user(self.technician)
        response = self.client.get('/api/v1/parts/', {'search': 'brake front'})
        self.assertEqual([row['part_number'] for row in response.data['results']], ['BP-001'])

    def test_in_stock_filter_and_available_quantity(self):
        self.client.authenticate_user(self.technician)
        response = self.client.get('/api/v1/parts/', {'in_stock': 'true'})
        self.assertEqual([row['part_number'] for row in response.data['results']], ['BP-001'])
        self.assertEqual(response.data['results'][0]['available_quantity'], 20)

        response = self.client.get('/api/v1/parts/', {'in_stock': 'false'})
        self.assertEqual([row['part_number'] for row in response.data['results']], ['OF-010'])

    def test_inactive_filter(self):
        self.client.authenticate_user(self.technician)
        response = self.client.get('/api/v1/parts/', {'active': 'false'})
        self.assertEqual([row['part_number'] for row in response.data['results']], ['OLD-1'])

    def test_create_part(self):
        self.client.authenticate_user(self.storekeeper)
        response = self.client.post('/api/v1/parts/', {
            'part_number': 'cl-100', 'name': 'Clutch Plate', 'unit_price': '1200.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['part_number'], 'CL-100')
        self.assertEqual(Part.objects.get(part_number='CL-100').unit_price, Decimal('1200.00'))
        self.assertTrue(AuditLog.objects.filter(model_name='Part', object_reference='CL-100').exists())

    def test_duplicate_part_number_rejected(self):
        self.client.authenticate_user(self.storekeeper)
        response = self.client.post('/api/v1/parts/', {'part_number': 'bp-001', 'name': 'Dup'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_negative_price_rejected(self):
        self.client.authenticate_user(self.storekeeper)
        response = self.client.post('/api/v1/parts/', {
            'part_number': 'X-1', 'name': 'X', 'unit_price': '-1.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_technician_cannot_modify_parts(self):
        self.client.authenticate_user(self.technician)
        response = self.client.post('/api/v1/parts/', {'part_number': 'X-2', 'name': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.patch(f'/api/v1/parts/{self.filter.id}/', {'unit_price': '1.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_part(self):
        self.client.authenticate_user(self.storekeeper)
        response = self.client.patch(f'/api/v1/parts/{self.filter.id}/', {'unit_price': '75.50'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.filter.refresh_from_db()
        self.assertEqual(self.filter.unit_price, Decimal('75.50'))

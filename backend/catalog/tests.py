"""
Test suite for the Catalog module
Tests: category CRUD, filters, and same-parent reordering
"""
import uuid

from django.test import TestCase
from rest_framework import status

from backend.catalog.models import Category
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class CategoryAPITests(TestCase):
    """Test category admin endpoints"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def test_create_category_generates_slug(self):
        response = self.client.post('/api/v1/admin/categories/', {'name': 'Fresh Fruit'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'fresh-fruit')

    def test_duplicate_slug_rejected(self):
        Category.objects.create(name='Drinks', slug='drinks')
        response = self.client.post('/api/v1/admin/categories/', {'name': 'Drinks'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('slug', response.data)

    def test_category_cannot_be_its_own_parent(self):
        category = TestDataFactory.create_category()
        response = self.client.patch(f'/api/v1/admin/categories/{category.id}/',
                                     {'parent': str(category.id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_child_cannot_become_parent(self):
        parent = TestDataFactory.create_category(name='Drinks')
        child = TestDataFactory.create_category(name='Juice', parent=parent)
        grandchild = TestDataFactory.create_category(name='Orange', parent=child)

        for descendant in (child, grandchild):
            response = self.client.patch(f'/api/v1/admin/categories/{parent.id}/',
                                         {'parent': str(descendant.id)}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertIn('circular reference', str(response.data['parent']))
        parent.refresh_from_db()
        self.assertIsNone(parent.parent_id)

    def test_move_under_unrelated_category(self):
        parent = TestDataFactory.create_category(name='Drinks')
        child = TestDataFactory.create_category(name='Juice', parent=parent)
        other = TestDataFactory.create_category(name='Snacks')
        response = self.client.patch(f'/api/v1/admin/categories/{child.id}/',
                                     {'parent': str(other.id)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        child.refresh_from_db()
        self.assertEqual(child.parent_id, other.id)

    def test_delete_with_children_rejected(self):
        parent = TestDataFactory.create_category(name='Drinks')
        child = TestDataFactory.create_category(name='Juice', parent=parent)
        response = self.client.delete(f'/api/v1/admin/categories/{parent.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot delete category with child categories')
        self.assertTrue(Category.objects.filter(pk=parent.pk).exists())
        child.refresh_from_db()
        self.assertEqual(child.parent_id, parent.id)

    def test_update_and_delete(self):
        category = TestDataFactory.create_category(name='Snacks')
        response = self.client.patch(f'/api/v1/admin/categories/{category.id}/',
                                     {'description': 'Crunchy'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['description'], 'Crunchy')

        response = self.client.delete(f'/api/v1/admin/categories/{category.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Category.objects.filter(pk=category.pk).exists())

    def test_unknown_category_404(self):
        response = self.client.get(f'/api/v1/admin/categories/{uuid.uuid4()}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class CategoryListTests(TestCase):
    """Test category list filters and pagination"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.root = TestDataFactory.create_category(name='Root', display_order=1)
        self.child = TestDataFactory.create_category(name='Child', parent=self.root, display_order=0)
        self.hidden = TestDataFactory.create_category(name='Hidden', is_active=False, display_order=2)

    def names(self, response):
        return [c['name'] for c in response.data['results']]

    def test_default_order_is_display_order(self):
        response = self.client.get('/api/v1/admin/categories/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.names(response), ['Child', 'Root', 'Hidden'])
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(response.data['page'], 1)

    def test_sort_desc(self):
        response = self.client.get('/api/v1/admin/categories/', {'sortOrder': 'desc'})
        self.assertEqual(self.names(response), ['Hidden', 'Root', 'Child'])

    def test_is_active_filter(self):
        response = self.client.get('/api/v1/admin/categories/', {'isActive': 'false'})
        self.assertEqual(self.names(response), ['Hidden'])

    def test_invalid_is_active_rejected(self):
        response = self.client.get('/api/v1/admin/categories/', {'isActive': 'yes'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_parent_filter(self):
        response = self.client.get('/api/v1/admin/categories/', {'parentId': str(self.root.id)})
        self.assertEqual(self.names(response), ['Child'])

        response = self.client.get('/api/v1/admin/categories/', {'parentId': 'null'})
        self.assertEqual(self.names(response), ['Root', 'Hidden'])

    def test_search(self):
        response = self.client.get('/api/v1/admin/categories/', {'search': 'hid'})
        self.assertEqual(self.names(response), ['Hidden'])

    def test_pagination(self):
        response = self.client.get('/api/v1/admin/categories/', {'limit': 2, 'page': 2})
        self.assertEqual(self.names(response), ['Hidden'])
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(response.data['previous'], 1)
        self.assertIsNone(response.data['next'])

    def test_page_past_the_end_is_empty(self):
        response = self.client.get('/api/v1/admin/categories/', {'limit': 2, 'page': 5})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['results'], [])
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(response.data['page'], 5)
        self.assertEqual(response.data['previous'], 2)
        self.assertIsNone(response.data['next'])

    def test_invalid_page_rejected(self):
        response = self.client.get('/api/v1/admin/categories/', {'page': 0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class CategoryReorderTests(TestCase):
    """Test drag-drop reordering of categories"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())
        self.parent = TestDataFactory.create_category(name='Parent')
        self.a = TestDataFactory.create_category(name='A', parent=self.parent, display_order=0)
        self.b = TestDataFactory.create_category(name='B', parent=self.parent, display_order=1)
        self.other = TestDataFactory.create_category(name='Other', display_order=5)

    def test_reorder_siblings(self):
        response = self.client.post('/api/v1/admin/categories/reorder/',
                                    {'ids': [str(self.b.id), str(self.a.id)]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.a.refresh_from_db()
        self.b.refresh_from_db()
        self.assertEqual((self.b.display_order, self.a.display_order), (0, 1))

    def test_mixed_parents_rejected(self):
        response = self.client.post('/api/v1/admin/categories/reorder/',
                                    {'ids': [str(self.a.id), str(self.other.id)]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['field'], 'ids')
        self.other.refresh_from_db()
        self.assertEqual(self.other.display_order, 5)

    def test_unknown_id_404(self):
        missing = str(uuid.uuid4())
        response = self.client.post('/api/v1/admin/categories/reorder/',
                                    {'ids': [str(self.a.id), missing]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['missing'], [missing])

    def test_empty_ids_400(self):
        response = self.client.post('/api/v1/admin/categories/reorder/', {'ids': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

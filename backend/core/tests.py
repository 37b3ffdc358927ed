"""
Tests for the shared display-order service, reorder payload validation and audit logs
"""
import uuid

from django.test import TestCase
from rest_framework import status

from backend.core.exceptions import NotFoundError, ValidationError
from backend.core.models import AuditLog
from backend.core.ordering import normalize_ids, reorder
from backend.core.serializers import ReorderSerializer
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.storefront.models import HeroSlide


class NormalizeIdsTests(TestCase):
    """Test id normalization before a reorder"""

    def test_strings_become_uuids(self):
        value = uuid.uuid4()
        self.assertEqual(normalize_ids([str(value)]), [value])

    def test_empty_list_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            normalize_ids([])
        self.assertEqual(ctx.exception.field, 'ids')

    def test_malformed_id_rejected(self):
        with self.assertRaises(ValidationError):
            normalize_ids(['not-a-uuid'])

    def test_duplicate_id_rejected(self):
        value = uuid.uuid4()
        with self.assertRaises(ValidationError):
            normalize_ids([value, str(value)])


class ReorderServiceTests(TestCase):
    """Test the reorder service against hero slides"""

    def setUp(self):
        self.a = TestDataFactory.create_hero_slide(title='A', display_order=0)
        self.b = TestDataFactory.create_hero_slide(title='B', display_order=1)
        self.c = TestDataFactory.create_hero_slide(title='C', display_order=2)

    def orders(self):
        return {s.title: s.display_order for s in HeroSlide.objects.all()}

    def test_position_becomes_display_order(self):
        count = reorder(HeroSlide, [self.c.id, self.a.id, self.b.id])
        self.assertEqual(count, 3)
        self.assertEqual(self.orders(), {'C': 0, 'A': 1, 'B': 2})

    def test_display_orders_are_zero_based_and_contiguous(self):
        reorder(HeroSlide, [self.b.id, self.c.id, self.a.id])
        values = sorted(HeroSlide.objects.values_list('display_order', flat=True))
        self.assertEqual(values, [0, 1, 2])

    def test_reorder_is_idempotent(self):
        ids = [self.b.id, self.a.id, self.c.id]
        reorder(HeroSlide, ids)
        first = self.orders()
        reorder(HeroSlide, ids)
        self.assertEqual(self.orders(), first)

    def test_partial_list_only_touches_listed_rows(self):
        reorder(HeroSlide, [self.c.id, self.b.id])
        self.assertEqual(self.orders(), {'A': 0, 'C': 0, 'B': 1})

    def test_updated_at_is_refreshed(self):
        before = HeroSlide.objects.get(pk=self.a.pk).updated_at
        reorder(HeroSlide, [self.a.id])
        self.assertGreaterEqual(HeroSlide.objects.get(pk=self.a.pk).updated_at, before)

    def test_unknown_id_changes_nothing(self):
        missing = uuid.uuid4()
        with self.assertRaises(NotFoundError) as ctx:
            reorder(HeroSlide, [self.c.id, missing, self.a.id])
        self.assertEqual(ctx.exception.missing, [str(missing)])
        self.assertEqual(self.orders(), {'A': 0, 'B': 1, 'C': 2})

    def test_duplicate_id_changes_nothing(self):
        with self.assertRaises(ValidationError):
            reorder(HeroSlide, [self.c.id, self.b.id, self.c.id])
        self.assertEqual(self.orders(), {'A': 0, 'B': 1, 'C': 2})

    def test_queryset_limits_the_collection(self):
        inactive = TestDataFactory.create_hero_slide(title='D', is_active=False, display_order=9)
        with self.assertRaises(NotFoundError):
            reorder(HeroSlide.objects.filter(is_active=True), [inactive.id, self.a.id])
        self.assertEqual(HeroSlide.objects.get(pk=inactive.pk).display_order, 9)

    def test_scope_failure_rolls_back(self):
        def reject(rows):
            raise ValidationError('mixed collection', field='ids')

        with self.assertRaises(ValidationError):
            reorder(HeroSlide, [self.c.id, self.a.id], scope=reject)
        self.assertEqual(self.orders(), {'A': 0, 'B': 1, 'C': 2})

    def test_scope_receives_rows_in_request_order(self):
        seen = []
        reorder(HeroSlide, [self.b.id, self.a.id], scope=lambda rows: seen.extend(r.title for r in rows))
        self.assertEqual(seen, ['B', 'A'])

    def test_rejects_non_model_target(self):
        with self.assertRaises(TypeError):
            reorder('hero_slides', [self.a.id])


class ReorderSerializerTests(TestCase):
    """Test reorder payload validation"""

    def test_valid_payload(self):
        ids = [str(uuid.uuid4()), str(uuid.uuid4())]
        serializer = ReorderSerializer(data={'ids': ids})
        self.assertTrue(serializer.is_valid(), serializer.errors)
        self.assertEqual([str(v) for v in serializer.validated_data['ids']], ids)

    def test_missing_ids(self):
        serializer = ReorderSerializer(data={})
        self.assertFalse(serializer.is_valid())
        self.assertIn('ids', serializer.errors)

    def test_empty_ids(self):
        serializer = ReorderSerializer(data={'ids': []})
        self.assertFalse(serializer.is_valid())

    def test_non_v4_uuid(self):
        serializer = ReorderSerializer(data={'ids': [str(uuid.uuid1())]})
        self.assertFalse(serializer.is_valid())

    def test_duplicates(self):
        value = str(uuid.uuid4())
        serializer = ReorderSerializer(data={'ids': [value, value]})
        self.assertFalse(serializer.is_valid())


class AuditLogAPITests(TestCase):
    """Test audit log listing"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_reorder_is_audited(self):
        a = TestDataFactory.create_hero_slide()
        b = TestDataFactory.create_hero_slide()
        response = self.client.post('/api/v1/admin/hero-slides/reorder/',
                                    {'ids': [str(b.id), str(a.id)]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

        log = AuditLog.objects.get(action='reorder')
        self.assertEqual(log.model_name, 'HeroSlide')
        self.assertEqual(log.user, self.admin)
        self.assertEqual(log.changes['ids'], [str(b.id), str(a.id)])

    def test_list_filters_by_action(self):
        category = TestDataFactory.create_category()
        self.client.delete(f'/api/v1/admin/categories/{category.id}/')
        self.client.post('/api/v1/admin/categories/', {'name': 'Fresh'}, format='json')

        response = self.client.get('/api/v1/audit-logs/', {'action': 'delete'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['model_name'], 'Category')

    def test_non_staff_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AuthAPITests(TestCase):
    """Test JWT login used by the admin UI"""

    def test_login_returns_tokens(self):
        TestDataFactory.create_admin(username='admin1', password='secret-pass-1')
        client = AuthenticatedAPIClient()
        response = client.post('/api/v1/auth/login/',
                               {'username': 'admin1', 'password': 'secret-pass-1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_anonymous_rejected(self):
        response = AuthenticatedAPIClient().get('/api/v1/admin/categories/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

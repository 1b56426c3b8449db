from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.db.models import F
from django.test import TestCase, override_settings

from _catalog.models import Category
from _catalog.services.category_tree import CategoryPathResolver


@override_settings(IMPORT_RETRY_BACKOFF=0)
class CategoryCommandTests(TestCase):
    def setUp(self):
        self.leaf_id = CategoryPathResolver().resolve('Home -> Kitchen -> Knives')

    def call(self, *args):
        out = StringIO()
        call_command(*args, stdout=out)
        return out.getvalue()

    def test_check_passes_on_consistent_tree(self):
        self.assertIn('consistent', self.call('rebuild_category_tree', '--check'))

    def test_check_fails_on_broken_interval(self):
        Category.objects.filter(pk=self.leaf_id).update(lft=90, rgt=91)

        with self.assertRaises(CommandError):
            self.call('rebuild_category_tree', '--check')

    def test_dry_run_leaves_bounds_alone(self):
        Category.objects.update(lft=F('lft') + 10, rgt=F('rgt') + 10)

        output = self.call('rebuild_category_tree', '--dry-run')

        self.assertIn('3 category row(s) would change', output)
        self.assertEqual(Category.objects.get(path='home').lft, 11)

    def test_rebuild(self):
        Category.objects.update(lft=F('lft') + 10, rgt=F('rgt') + 10)

        self.call('rebuild_category_tree')

        self.assertEqual(Category.objects.get(path='home').lft, 1)
        self.assertEqual(Category.objects.get(pk=self.leaf_id).rgt, 4)

    def test_delete_category(self):
        kitchen = Category.objects.get(path='home/kitchen')

        output = self.call('delete_category', str(kitchen.pk))

        self.assertIn('Deleted 2 categories', output)
        self.assertEqual(Category.objects.live().count(), 1)

    def test_delete_unknown_category(self):
        with self.assertRaises(CommandError):
            self.call('delete_category', 'not-a-uuid')

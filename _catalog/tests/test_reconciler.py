from decimal import Decimal

from django.test import TestCase, override_settings

from _catalog.exceptions import RecordValidationError, SkuConflictError
from _catalog.models import (
    Category,
    InventoryTransaction,
    Media,
    Product,
    ProductCategory,
    ProductDynamicFilter,
    Variant,
)
from _catalog.services.reconciler import ALREADY_EXISTED, CREATED, UPDATED, ProductReconciler


def make_record(**overrides):
    record = {
        'product': {
            'external_id': '1001',
            'sku': 'ABC-1',
            'name': 'Ruched Mini Dress',
            'brand_name': 'Acme',
            'images': ['https://cdn.example.com/abc-1/front.jpg'],
        },
        'variants': [
            {
                'sku': 'ABC-1',
                'price': Decimal('19.99'),
                'stock': 5,
                'color': 'Black',
                'size': 'S',
                'images': ['https://cdn.example.com/abc-1/black-s.jpg'],
            },
        ],
        'category_path': 'Women -> Dresses -> Mini',
    }
    record.update(overrides)
    return record


class RaceLosingReconciler(ProductReconciler):
    """Misses the first product and variant lookups, as if another worker committed them a moment earlier."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.blind_products = 1
        self.blind_variants = 1

    def find_product(self, external_id, sku):
        if self.blind_products:
            self.blind_products -= 1
            return None
        return super().find_product(external_id, sku)

    def find_variant(self, sku, product):
        if self.blind_variants:
            self.blind_variants -= 1
            return None
        return super().find_variant(sku, product)


@override_settings(IMPORT_RETRY_BACKOFF=0)
class ProductReconcilerTests(TestCase):
    def setUp(self):
        self.reconciler = ProductReconciler()

    def test_first_import_creates_catalog_rows(self):
        result = self.reconciler.reconcile(make_record())

        self.assertEqual(result['product_status'], CREATED)
        self.assertEqual(result['category_link'], CREATED)

        leaf = Category.objects.get(pk=result['category_id'])
        self.assertEqual(leaf.path, 'women/dresses/mini')
        self.assertEqual(Category.objects.count(), 3)
        self.assertEqual(
            list(leaf.get_ancestors().values_list('name', flat=True)),
            ['Women', 'Dresses'],
        )

        product = Product.objects.get(sku='ABC-1')
        self.assertEqual(product.pk, result['product_id'])
        self.assertEqual(product.default_category_id, leaf.pk)
        self.assertTrue(product.is_active)

        variant = Variant.objects.get()
        self.assertEqual(variant.product_id, product.pk)
        self.assertEqual(variant.stock, 5)
        self.assertEqual(variant.price, Decimal('19.99'))

        entry = InventoryTransaction.objects.get()
        self.assertEqual(entry.variant_id, variant.pk)
        self.assertEqual(entry.change, 5)
        self.assertEqual(entry.reason, InventoryTransaction.INITIAL_IMPORT)
        self.assertEqual(result['variants'][0]['ledger_entry'], entry.pk)

    def test_reimport_is_idempotent(self):
        first = self.reconciler.reconcile(make_record())
        second = self.reconciler.reconcile(make_record())

        self.assertEqual(second['product_id'], first['product_id'])
        self.assertEqual(second['product_status'], UPDATED)
        self.assertEqual(second['category_link'], ALREADY_EXISTED)
        self.assertEqual(second['variants'][0]['status'], UPDATED)
        self.assertIsNone(second['variants'][0]['ledger_entry'])
        self.assertEqual(second['media_ids'], first['media_ids'])

        self.assertEqual(Category.objects.count(), 3)
        self.assertEqual(Product.objects.count(), 1)
        self.assertEqual(Variant.objects.count(), 1)
        self.assertEqual(InventoryTransaction.objects.count(), 1)
        self.assertEqual(ProductCategory.objects.count(), 1)
        self.assertEqual(Media.objects.count(), 2)
        self.assertEqual(Variant.objects.get().stock, 5)

    def test_update_changes_fields_in_place(self):
        self.reconciler.reconcile(make_record())
        record = make_record()
        record['product']['name'] = 'Ruched Mini Dress (restock)'
        record['variants'][0].update(price=Decimal('17.50'), stock=9)

        self.reconciler.reconcile(record)

        product = Product.objects.get(sku='ABC-1')
        self.assertEqual(product.name, 'Ruched Mini Dress (restock)')
        variant = Variant.objects.get(sku='ABC-1')
        self.assertEqual(variant.price, Decimal('17.50'))
        self.assertEqual(variant.stock, 9)
        # Stock changes on update never touch the ledger
        self.assertEqual(list(InventoryTransaction.objects.values_list('change', flat=True)), [5])

    def test_external_id_wins_and_identity_keys_are_kept(self):
        self.reconciler.reconcile(make_record())
        record = make_record()
        record['product']['sku'] = 'ABC-1-RENAMED'

        result = self.reconciler.reconcile(record)

        self.assertEqual(result['product_status'], UPDATED)
        self.assertEqual(Product.objects.count(), 1)
        self.assertEqual(Product.objects.get().sku, 'ABC-1')

    def test_lookup_falls_back_to_sku(self):
        record = make_record()
        del record['product']['external_id']
        first = self.reconciler.reconcile(record)

        second = self.reconciler.reconcile(make_record())

        self.assertEqual(second['product_id'], first['product_id'])
        self.assertEqual(Product.objects.count(), 1)

    def test_zero_stock_writes_no_ledger_entry(self):
        record = make_record()
        record['variants'][0]['stock'] = 0

        result = self.reconciler.reconcile(record)

        self.assertIsNone(result['variants'][0]['ledger_entry'])
        self.assertFalse(InventoryTransaction.objects.exists())

    def test_missing_booleans_default_to_true(self):
        record = make_record()
        record['product']['is_active'] = None
        record['variants'][0]['is_active'] = None

        self.reconciler.reconcile(record)

        self.assertTrue(Product.objects.get().is_active)
        self.assertTrue(Variant.objects.get().is_active)

    def test_record_without_category(self):
        result = self.reconciler.reconcile(make_record(category_path=None))

        self.assertIsNone(result['category_id'])
        self.assertIsNone(result['category_link'])
        self.assertIsNone(Product.objects.get().default_category)

    def test_validation(self):
        record = make_record()
        record['product']['name'] = '  '
        with self.assertRaises(RecordValidationError):
            self.reconciler.reconcile(record)

        record = make_record()
        record['product'].update(sku='', external_id=None)
        with self.assertRaises(RecordValidationError):
            self.reconciler.reconcile(record)

        self.assertFalse(Product.objects.exists())

    def test_duplicate_variant_sku_in_one_record(self):
        record = make_record()
        record['variants'].append(dict(record['variants'][0]))

        with self.assertRaises(RecordValidationError):
            self.reconciler.reconcile(record)

        self.assertFalse(Product.objects.exists())
        self.assertFalse(Category.objects.exists())

    def test_sku_owned_by_other_product_rolls_back_unit(self):
        self.reconciler.reconcile(make_record())
        record = make_record(category_path='Men -> Shirts')
        record['product'].update(external_id='2002', sku='XYZ-9')

        with self.assertRaises(SkuConflictError):
            self.reconciler.reconcile(record)

        self.assertFalse(Product.objects.filter(sku='XYZ-9').exists())
        self.assertFalse(Category.objects.filter(path='men').exists())
        self.assertEqual(Variant.objects.count(), 1)

    def test_dynamic_filters(self):
        first = self.reconciler.reconcile(make_record())
        second = self.reconciler.reconcile(make_record())

        self.assertEqual(
            [(f['type'], f['value'], f['status']) for f in first['filters']],
            [
                (ProductDynamicFilter.BRAND, 'Acme', CREATED),
                (ProductDynamicFilter.COLOR, 'Black', CREATED),
                (ProductDynamicFilter.SIZE, 'S', CREATED),
            ],
        )
        self.assertEqual({f['status'] for f in second['filters']}, {ALREADY_EXISTED})
        self.assertEqual(ProductDynamicFilter.objects.count(), 3)

    def test_losing_insert_races_updates_the_winner(self):
        first = self.reconciler.reconcile(make_record())

        result = RaceLosingReconciler().reconcile(make_record())

        self.assertEqual(result['product_id'], first['product_id'])
        self.assertEqual(result['product_status'], UPDATED)
        self.assertEqual(result['variants'][0]['status'], UPDATED)
        self.assertEqual(Product.objects.count(), 1)
        self.assertEqual(Variant.objects.count(), 1)
        self.assertEqual(InventoryTransaction.objects.count(), 1)

    def test_ledger_reference(self):
        ProductReconciler(reference='feed.csv').reconcile(make_record())

        self.assertEqual(InventoryTransaction.objects.get().reference, 'feed.csv')


@override_settings(IMPORT_RETRY_BACKOFF=0)
class VariantSkuSynthesisTests(TestCase):
    def record(self, *variants, sku='TEE', external_id='t-1'):
        return {
            'product': {'external_id': external_id, 'sku': sku, 'name': 'Tee'},
            'variants': list(variants),
            'category_path': None,
        }

    def test_sku_from_color_and_size(self):
        result = ProductReconciler().reconcile(self.record(
            {'color': 'Dark Blue', 'size': 'M'},
            {'color': 'Dark Blue', 'size': 'M'},
            {'stock': 1},
        ))

        self.assertEqual(
            [v['sku'] for v in result['variants']],
            ['TEE-Dark-Blue-M', 'TEE-Dark-Blue-M-2', 'TEE-v3'],
        )

    def test_synthesized_skus_are_stable_across_imports(self):
        record = self.record({'color': 'Red'}, {'size': 'XL'})
        first = ProductReconciler().reconcile(record)
        second = ProductReconciler().reconcile(record)

        self.assertEqual(
            [v['sku'] for v in second['variants']],
            [v['sku'] for v in first['variants']],
        )
        self.assertEqual({v['status'] for v in second['variants']}, {UPDATED})
        self.assertEqual(Variant.objects.count(), 2)

    def test_skips_skus_owned_by_other_products(self):
        ProductReconciler().reconcile(self.record({'sku': 'TEE-v1'}, sku='OTHER', external_id='o-1'))

        result = ProductReconciler().reconcile(self.record({'stock': 2}))

        self.assertEqual(result['variants'][0]['sku'], 'TEE-v1-2')
        self.assertEqual(Variant.objects.count(), 2)

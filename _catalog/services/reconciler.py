"""
Product/variant reconciliation.

``ProductReconciler.reconcile`` takes one normalized record::

    {
        "product": {"external_id": ..., "sku": ..., "name": ..., "images": [...], ...},
        "variants": [{"sku": ..., "price": ..., "stock": ..., "images": [...], ...}],
        "category_path": "Women -> Dresses -> Mini",
    }

and writes it in a single transaction. Replaying a record is safe: products
and variants are matched by identity and updated in place, and the inventory
ledger is only written when a variant is created.
"""

import logging

from django.db import IntegrityError, transaction

from _catalog.exceptions import CatalogError, RecordValidationError, SkuConflictError
from _catalog.models import (
    InventoryTransaction,
    Product,
    ProductCategory,
    ProductDynamicFilter,
    Variant,
)
from _catalog.services.category_tree import CategoryPathResolver
from _catalog.services.identity import DeterministicSkuProvider
from _catalog.services.media import MediaDeduplicator

logger = logging.getLogger(__name__)

CREATED = 'created'
UPDATED = 'updated'
ALREADY_EXISTED = 'already_existed'

PRODUCT_FIELDS = (
    'name',
    'title',
    'short_description',
    'description',
    'brand_name',
    'gender',
    'supplier',
    'country_of_origin',
    'attributes',
    'cod_available',
    'is_active',
)

VARIANT_FIELDS = (
    'barcode',
    'vendor_product_id',
    'price',
    'mrp',
    'sale_price',
    'vendor_mrp',
    'vendor_sale_price',
    'currency',
    'conversion_rate',
    'stock',
    'weight',
    'color',
    'size',
    'normalized_color',
    'normalized_size',
    'attributes',
    'images',
    'country_of_origin',
    'is_active',
)


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def field_values(model, data, fields):
    """Pick ``fields`` out of ``data``; a None for a non-null column falls back to the column default."""
    values = {}
    for name in fields:
        if name not in data:
            continue
        value = data[name]
        field = model._meta.get_field(name)
        if value is None and not field.null:
            value = field.get_default()
        if isinstance(value, str) and getattr(field, 'max_length', None):
            value = value[:field.max_length]
        values[name] = value
    return values


class ProductReconciler:
    def __init__(self, vendor='', sku_provider=None, resolver=None, media=None, reference=''):
        self.vendor = vendor or ''
        self.sku_provider = sku_provider or DeterministicSkuProvider()
        self.resolver = resolver or CategoryPathResolver(vendor=self.vendor)
        self.media = media or MediaDeduplicator()
        self.reference = reference

    def reconcile(self, record):
        product_data = record.get('product') or {}
        variants_data = record.get('variants') or []
        self.validate(product_data)

        with transaction.atomic():
            # Categories first: the tree lock is the only lock taken before product rows.
            category_id = self.resolver.resolve(record.get('category_path'))

            product, product_status = self._upsert_product(product_data, category_id)
            category_link = self._link_category(product, category_id) if category_id else None

            reserved = set()
            variants = []
            variant_results = []
            for position, data in enumerate(variants_data, start=1):
                variant, status, ledger_entry = self._upsert_variant(product, data, position, reserved)
                variants.append((variant, data))
                variant_results.append({
                    'id': variant.pk,
                    'sku': variant.sku,
                    'status': status,
                    'ledger_entry': ledger_entry,
                })

            filters = self._sync_filters(product, product_data, variants_data)

            media_ids = []
            for variant, data in variants:
                media_ids.extend(self.media.attach(variant, data.get('images')))
            media_ids.extend(self.media.attach(product, product_data.get('images')))

        logger.debug(
            '%s product %s with %d variant(s)', product_status, product.pk, len(variant_results),
            extra={'product_id': str(product.pk), 'sku': product.sku, 'external_id': product.external_id},
        )
        return {
            'product_id': product.pk,
            'product_status': product_status,
            'category_id': category_id,
            'category_link': category_link,
            'variants': variant_results,
            'filters': filters,
            'media_ids': media_ids,
        }

    def validate(self, product_data):
        if not _clean(product_data.get('name')):
            raise RecordValidationError("Product has no name")
        if not (_clean(product_data.get('sku')) or _clean(product_data.get('external_id'))):
            raise RecordValidationError("Product has neither a SKU nor an external id")

    # -- products ----------------------------------------------------------

    def find_product(self, external_id, sku):
        live = Product.objects.live()
        if external_id:
            product = live.filter(vendor=self.vendor, external_id=external_id).first()
            if product is not None:
                return product
        if sku:
            return live.filter(sku=sku).first()
        return None

    def _upsert_product(self, data, category_id):
        sku = _clean(data.get('sku'))
        external_id = _clean(data.get('external_id'))
        values = field_values(Product, data, PRODUCT_FIELDS)
        if category_id:
            values['default_category_id'] = category_id

        product = self.find_product(external_id, sku)
        if product is None:
            candidate = Product(vendor=self.vendor, sku=sku, external_id=external_id, **values)
            Product.objects.bulk_create([candidate], ignore_conflicts=True)
            product = self.find_product(external_id, sku)
            if product is None:
                raise CatalogError(f"Product {sku or external_id} was neither inserted nor found")
            if product.pk == candidate.pk:
                return product, CREATED
            logger.debug(
                'product %s inserted concurrently, updating', sku or external_id,
                extra={'sku': sku, 'external_id': external_id},
            )

        # Identity keys stay as first written
        for name, value in values.items():
            setattr(product, name, value)
        product.save(update_fields=[*values, 'updated_at'])
        return product, UPDATED

    def _link_category(self, product, category_id):
        _, created = ProductCategory.objects.get_or_create(product=product, category_id=category_id)
        return CREATED if created else ALREADY_EXISTED

    # -- variants ----------------------------------------------------------

    def _upsert_variant(self, product, data, position, reserved):
        sku = _clean(data.get('sku'))
        if sku is None:
            sku = self.sku_provider.variant_sku(product, data, position, reserved)
        elif sku in reserved:
            raise RecordValidationError(f"Variant SKU {sku!r} appears twice in one record")
        reserved.add(sku)

        values = field_values(Variant, data, VARIANT_FIELDS)

        variant = self.find_variant(sku, product)
        if variant is None:
            owner_id = self._sku_owner(sku, product)
            if owner_id is not None:
                raise SkuConflictError(sku, owner_id)
            try:
                with transaction.atomic():
                    variant = Variant.objects.create(product=product, sku=sku, **values)
                    ledger_entry = self._record_initial_stock(variant)
                return variant, CREATED, ledger_entry
            except IntegrityError:
                variant = self.find_variant(sku, product)
                if variant is None:
                    raise SkuConflictError(sku, self._sku_owner(sku, product))
                logger.debug('variant %s inserted concurrently, updating', sku, extra={'sku': sku})

        for name, value in values.items():
            setattr(variant, name, value)
        variant.save(update_fields=[*values, 'updated_at'])
        return variant, UPDATED, None

    def find_variant(self, sku, product):
        return Variant.objects.live().filter(sku=sku, product=product).first()

    def _sku_owner(self, sku, product):
        return (
            Variant.objects.live()
            .filter(sku=sku)
            .exclude(product=product)
            .values_list('product_id', flat=True)
            .first()
        )

    def _record_initial_stock(self, variant):
        if not variant.stock or variant.stock <= 0:
            return None
        entry = InventoryTransaction.objects.create(
            variant=variant,
            change=variant.stock,
            reason=InventoryTransaction.INITIAL_IMPORT,
            reference=self.reference,
        )
        return entry.pk

    # -- filters -----------------------------------------------------------

    def _sync_filters(self, product, product_data, variants_data):
        first = variants_data[0] if variants_data else {}
        candidates = [
            (ProductDynamicFilter.BRAND, product_data.get('brand_name')),
            (ProductDynamicFilter.COLOR, first.get('color')),
            (ProductDynamicFilter.SIZE, first.get('size')),
        ]

        results = []
        for filter_type, raw in candidates:
            value = _clean(raw)
            if value is None:
                continue
            _, created = ProductDynamicFilter.objects.get_or_create(
                product=product,
                filter_type=filter_type,
                filter_value=value[:255],
            )
            results.append({
                'type': filter_type,
                'value': value,
                'status': CREATED if created else ALREADY_EXISTED,
            })
        return results

"""
Vendor feed layouts.

Each ``FeedFormat`` turns the raw CSV rows of one unit of work into the
normalized record the catalog reconciler understands::

    {"product": {...}, "variants": [{...}, ...], "category_path": "A -> B"}

Transformers are pure: they never touch the database.
"""

import json
import re
from datetime import timezone as dt_timezone
from decimal import Decimal

from dateutil import parser as date_parser

from _catalog.exceptions import RecordValidationError
from _catalog.services.identity import sku_part

from .exceptions import FeedError
from .pricing import money, to_decimal


def text(row, *columns):
    """First non-empty value among ``columns``, stripped; '' when none."""
    for column in columns:
        value = row.get(column)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return ''


def to_int(value):
    number = to_decimal(value)
    if number is None:
        return 0
    return int(number)


def parse_json(value, fallback=None):
    if value is None or value == '':
        return fallback
    if isinstance(value, (list, dict)):
        return value
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return fallback


def parse_timestamp(value):
    """Vendor timestamp -> ISO 8601 in UTC, or None when unparseable."""
    if not value:
        return None
    try:
        parsed = date_parser.parse(str(value))
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    return parsed.astimezone(dt_timezone.utc).isoformat()


def split_urls(value):
    if not value:
        return []
    return [url.strip() for url in str(value).split(',') if url.strip()]


def parse_combination(value):
    """
    ``"KNITTED MINI DRESS : Color - White, Size - L"`` -> ``{"color": "White", "size": "L"}``
    """
    if not value:
        return {}
    _, sep, tail = str(value).partition(':')
    if not sep:
        tail = value
    attrs = {}
    for pair in tail.split(','):
        key, _, val = pair.partition('-')
        key = re.sub(r'\s+', '_', key.strip().lower())
        val = val.strip()
        if key and val:
            attrs[key] = val
    return attrs


def compact(mapping):
    return {key: value for key, value in mapping.items() if value not in (None, '', [], {})}


def price_fields(mrp, sale_price):
    mrp, sale_price = money(mrp), money(sale_price)
    return {
        'mrp': mrp,
        'sale_price': sale_price,
        'price': sale_price if sale_price is not None else mrp,
    }


class FeedFormat:
    """Base layout. ``grouped`` feeds spread one product over several rows sharing ``unit_key``."""

    name = None
    grouped = False
    required_columns = ()

    def unit_key(self, row):
        return None

    def transform(self, rows, pricing=None):
        record = self.build(rows)
        if pricing is not None:
            for variant in record['variants']:
                pricing.apply(variant)
        return record

    def build(self, rows):
        raise NotImplementedError


class GenericFeed(FeedFormat):
    """One row per product combination, PrestaShop-style export columns."""

    name = 'generic'
    required_columns = ('Product Name',)

    def unit_key(self, row):
        return text(row, 'Product ID', 'Combinations Reference Code', 'Product Reference Code') or None

    def build(self, rows):
        row = rows[0]
        category_path = text(row, 'Default Category Tree') or None
        combination = parse_combination(row.get('Product Name With Combination'))
        features = {
            re.sub(r'\W+', '_', column[len('Feature '):].strip().lower()): value
            for column, value in row.items()
            if column.startswith('Feature ') and value
        }

        product = {
            'external_id': text(row, 'Product ID') or None,
            'sku': text(row, 'Product Reference Code') or None,
            'name': text(row, 'Product Name'),
            'title': text(row, 'Product Name'),
            'short_description': text(row, 'Short Description'),
            'description': text(row, 'Description'),
            'brand_name': text(row, 'Manufacturer Name', 'Feature Manufacturer Name'),
            'supplier': text(row, 'Manufacturer Name'),
            'country_of_origin': 'Italy' if category_path and 'Italy' in category_path else text(row, 'Feature Made In'),
            'gender': text(row, 'Feature Gender', 'Feature Adults Gender Inclusive'),
            'attributes': features,
        }

        color = text(row, 'Feature Color') or combination.get('color', '')
        size = text(row, 'Feature Size') or combination.get('size', '')
        variant = {
            'sku': text(row, 'Combinations Reference Code', 'Product Combinations ID', 'Product Reference Code') or None,
            'stock': to_int(row.get('Quantity')),
            'barcode': text(row, 'Combinations EAN-13 Or JAN Barcode', 'EAN-13 Or JAN Barcode'),
            'vendor_product_id': text(row, 'Product Combinations ID'),
            'color': color,
            'size': size,
            'normalized_color': text(row, 'normalized_colors', 'normalized_color'),
            'normalized_size': text(row, 'normalized_size'),
            'attributes': compact({
                'color': color,
                'size': size,
                'color_code': text(row, 'Feature Color Code'),
                'attribute_group_color': text(row, 'Attribute Group Color'),
                'attribute_group_size': text(row, 'Attribute Group Size'),
                'size_type': text(row, 'size_type'),
            }),
            'images': split_urls(row.get('Product Image Urls')),
            **price_fields(row.get('Street Price'), row.get('Final Price Without Tax')),
        }
        return {'product': product, 'variants': [variant], 'category_path': category_path}


class LuxuryFeed(FeedFormat):
    """One row per product with JSON-encoded images and per-size quantities."""

    name = 'luxury'
    required_columns = ('sku', 'name')

    def unit_key(self, row):
        return text(row, 'sku', 'supplier_product_id', 'id') or None

    def named(self, value):
        # Vendor sends either {"name": "Women"} or a plain string
        parsed = parse_json(value)
        if isinstance(parsed, dict):
            return str(parsed.get('name') or '').strip()
        return str(value or '').strip()

    def build(self, rows):
        row = rows[0]
        sku = text(row, 'sku') or None
        tags = parse_json(row.get('products_tags'), [])
        season_one = self.named(row.get('season_one'))
        season_two = self.named(row.get('season_two'))
        color = text(row, 'color_detail', 'color_supplier')
        country = text(row, 'made_in')
        cost = money(row.get('cost'))

        product = {
            'external_id': text(row, 'supplier_product_id', 'id') or None,
            'sku': sku,
            'name': text(row, 'name'),
            'title': text(row, 'name'),
            'description': text(row, 'description'),
            'brand_name': text(row, 'brand'),
            'gender': self.named(row.get('gender')),
            'supplier': text(row, 'supplier'),
            'country_of_origin': country,
            'images': [url for url in parse_json(row.get('images'), []) if isinstance(url, str)],
            'attributes': compact({
                'brand_model_number': text(row, 'brand_model_number'),
                'hs_code': text(row, 'hs_code'),
                'year': text(row, 'year'),
                'color_detail': text(row, 'color_detail'),
                'color_supplier': text(row, 'color_supplier'),
                'material': text(row, 'material'),
                'size_info': text(row, 'size_info'),
                'category_id_source': text(row, 'product_category_id'),
                'vendor_source_id': text(row, 'id'),
                'tags': tags,
                'season_one': season_one,
                'season_two': season_two,
                'vendor_created_at': parse_timestamp(row.get('created_at')),
                'vendor_updated_at': parse_timestamp(row.get('updated_at')),
            }),
        }

        shared = {
            'vendor_product_id': text(row, 'supplier_product_id'),
            'color': color,
            'normalized_color': text(row, 'normalized_color'),
            'normalized_size': text(row, 'normalized_size'),
            'country_of_origin': country,
            'attributes': compact({
                'ean': text(row, 'ean').replace('*', ''),
                'brand_model_number': text(row, 'brand_model_number'),
                'hs_code': text(row, 'hs_code'),
                'material': text(row, 'material'),
                'year': text(row, 'year'),
                'cost': str(cost) if cost is not None else None,
                'tags': tags,
                'season_one': season_one,
                'season_two': season_two,
            }),
            **price_fields(row.get('original_price'), row.get('selling_price')),
        }

        variants = []
        for entry in parse_json(row.get('size_quantity'), []) or []:
            # [{"40": "1"}, {"41": "3"}]
            if not isinstance(entry, dict) or not entry:
                continue
            size, quantity = next(iter(entry.items()))
            size = str(size).strip()
            if not size:
                continue
            variants.append({
                **shared,
                'sku': f'{sku}-{sku_part(size)}' if sku else None,
                'size': size,
                'stock': to_int(quantity),
            })

        if not variants:
            variants.append({
                **shared,
                'sku': sku,
                'size': text(row, 'size_info') or 'UNI',
                'stock': to_int(row.get('qty')),
            })

        category = text(row, 'category_string').replace(',', '>')
        return {'product': product, 'variants': variants, 'category_path': category or None}


class GroupedFeed(FeedFormat):
    """
    Multi-row feed: a ``PRODUCT`` row and its ``MODEL`` rows share ``product_id``.
    The rows of a group may be anywhere in the file.
    """

    name = 'grouped'
    grouped = True
    required_columns = ('record_type', 'product_id')

    PRODUCT = 'PRODUCT'
    MODEL = 'MODEL'

    def unit_key(self, row):
        return text(row, 'product_id') or None

    def build(self, rows):
        product_row = next((r for r in rows if text(r, 'record_type').upper() == self.PRODUCT), None)
        if product_row is None:
            product_row = next((r for r in rows if text(r, 'code', 'name')), None)
        if product_row is None:
            raise RecordValidationError(f"Group {text(rows[0], 'product_id')!r} has no PRODUCT row")
        models = [r for r in rows if text(r, 'record_type').upper() == self.MODEL]

        main = text(product_row, 'Categorie')
        sub = text(product_row, 'Sottocategorie')
        category_path = f'{main} -> {sub}' if main and sub else (main or None)

        images = [url for url in (text(product_row, f'picture {n}') for n in (1, 2, 3)) if url]
        color = text(product_row, 'color')
        weight = to_decimal(product_row.get('weight'))

        product = {
            'external_id': text(product_row, 'product_id') or None,
            'sku': text(product_row, 'code') or None,
            'name': text(product_row, 'name', 'productname'),
            'title': text(product_row, 'productname', 'name'),
            'description': text(product_row, 'plain_description'),
            'brand_name': text(product_row, 'brand', 'Firme'),
            'supplier': text(product_row, 'brand', 'Firme'),
            'country_of_origin': text(product_row, 'madein', 'Produzione'),
            'gender': text(product_row, 'Genere'),
            'cod_available': True,
            'images': images,
            'attributes': compact({
                'made_in': text(product_row, 'madein', 'Produzione'),
                'season': text(product_row, 'season'),
                'color': color or text(product_row, 'Genere'),
                'heel': text(product_row, 'heel'),
                'weight': str(weight) if weight is not None else None,
            }),
        }

        prices = price_fields(product_row.get('street_price'), product_row.get('sell_price'))
        shared = {
            'color': color,
            'weight': weight.quantize(Decimal('0.001')) if weight is not None else None,
            'is_active': True,
            **prices,
        }

        variants = []
        for model in models:
            model_id = text(model, 'model_id')
            size = text(model, 'model_size')
            variants.append({
                **shared,
                'sku': model_id or None,
                'stock': to_int(text(model, 'model_quantity', 'product_quantity') or text(product_row, 'product_quantity')),
                'barcode': re.sub(r'\s+', '', text(model, 'barcode') or model_id),
                'vendor_product_id': model_id,
                'size': size,
                'normalized_color': text(model, 'normalized_color'),
                'normalized_size': text(model, 'normalized_size'),
                'attributes': compact({'size': size, 'color': color}),
            })

        if not variants:
            size = text(product_row, 'model_size')
            variants.append({
                **shared,
                'sku': text(product_row, 'code', 'product_id') or None,
                'stock': to_int(product_row.get('product_quantity')),
                'barcode': text(product_row, 'barcode'),
                'vendor_product_id': text(product_row, 'model_id'),
                'size': size,
                'attributes': compact({'size': size, 'color': color}),
            })

        return {'product': product, 'variants': variants, 'category_path': category_path}


FEED_FORMATS = {feed.name: feed for feed in (GenericFeed(), LuxuryFeed(), GroupedFeed())}


def get_feed_format(name):
    try:
        return FEED_FORMATS[name]
    except KeyError:
        raise FeedError(f"Unknown feed format {name!r}; expected one of {', '.join(FEED_FORMATS)}")

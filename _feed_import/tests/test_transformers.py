import json
from decimal import Decimal

from django.test import SimpleTestCase

from _catalog.exceptions import RecordValidationError
from _feed_import.exceptions import FeedError
from _feed_import.pricing import PriceAdjustment
from _feed_import.transformers import (
    FEED_FORMATS,
    get_feed_format,
    parse_combination,
    parse_timestamp,
    split_urls,
    to_int,
)


class HelperTests(SimpleTestCase):
    def test_parse_combination(self):
        self.assertEqual(
            parse_combination('KNITTED MINI DRESS : Color - White, Size - L'),
            {'color': 'White', 'size': 'L'},
        )
        self.assertEqual(parse_combination('Shoe Size - 42-43'), {'shoe_size': '42-43'})
        self.assertEqual(parse_combination(''), {})

    def test_split_urls(self):
        self.assertEqual(
            split_urls(' https://a.example/1.jpg, ,https://a.example/2.jpg '),
            ['https://a.example/1.jpg', 'https://a.example/2.jpg'],
        )

    def test_to_int_is_lenient(self):
        self.assertEqual(to_int('7'), 7)
        self.assertEqual(to_int('3.0'), 3)
        self.assertEqual(to_int('n/a'), 0)
        self.assertEqual(to_int(None), 0)

    def test_parse_timestamp(self):
        self.assertEqual(parse_timestamp('2024-03-05 10:15:00'), '2024-03-05T10:15:00+00:00')
        self.assertEqual(parse_timestamp('2024-03-05T12:15:00+02:00'), '2024-03-05T10:15:00+00:00')
        self.assertIsNone(parse_timestamp('not a date'))
        self.assertIsNone(parse_timestamp(''))

    def test_registry(self):
        self.assertEqual(set(FEED_FORMATS), {'generic', 'luxury', 'grouped'})
        with self.assertRaises(FeedError):
            get_feed_format('xml')


class GenericFeedTests(SimpleTestCase):
    feed = get_feed_format('generic')

    def row(self, **overrides):
        row = {
            'Product ID': '501',
            'Product Reference Code': 'ABC-1',
            'Product Name': 'Knitted Mini Dress',
            'Default Category Tree': 'Women -> Dresses -> Mini',
            'Manufacturer Name': 'Acme',
            'Quantity': '5',
            'Final Price Without Tax': '19.99',
            'Street Price': '29.90',
            'Product Image Urls': 'https://cdn.example.com/1.jpg,https://cdn.example.com/2.jpg',
            'Product Name With Combination': 'KNITTED MINI DRESS : Color - White, Size - L',
            'Combinations Reference Code': 'ABC-1-WHITE-L',
            'Feature Material': 'Cotton',
            'Feature Color': '',
        }
        row.update(overrides)
        return row

    def test_transform(self):
        record = self.feed.transform([self.row()])

        product = record['product']
        self.assertEqual(product['external_id'], '501')
        self.assertEqual(product['sku'], 'ABC-1')
        self.assertEqual(product['brand_name'], 'Acme')
        self.assertEqual(product['attributes'], {'material': 'Cotton'})
        self.assertEqual(record['category_path'], 'Women -> Dresses -> Mini')

        [variant] = record['variants']
        self.assertEqual(variant['sku'], 'ABC-1-WHITE-L')
        self.assertEqual(variant['stock'], 5)
        self.assertEqual(variant['price'], Decimal('19.99'))
        self.assertEqual(variant['mrp'], Decimal('29.90'))
        self.assertEqual(variant['color'], 'White')
        self.assertEqual(variant['size'], 'L')
        self.assertEqual(len(variant['images']), 2)

    def test_variant_sku_falls_back_to_reference_code(self):
        record = self.feed.transform([self.row(**{'Combinations Reference Code': ''})])
        self.assertEqual(record['variants'][0]['sku'], 'ABC-1')

    def test_price_falls_back_to_street_price(self):
        record = self.feed.transform([self.row(**{'Final Price Without Tax': 'n/a'})])
        self.assertEqual(record['variants'][0]['price'], Decimal('29.90'))
        self.assertIsNone(record['variants'][0]['sale_price'])

    def test_unit_key(self):
        self.assertEqual(self.feed.unit_key(self.row()), '501')
        self.assertIsNone(self.feed.unit_key({'Product Name': 'x'}))

    def test_pricing_is_applied(self):
        pricing = PriceAdjustment('aed', Decimal('4'), Decimal('10'))

        [variant] = self.feed.transform([self.row()], pricing=pricing)['variants']

        self.assertEqual(variant['vendor_sale_price'], Decimal('19.99'))
        self.assertEqual(variant['vendor_mrp'], Decimal('29.90'))
        self.assertEqual(variant['sale_price'], Decimal('87.96'))
        self.assertEqual(variant['mrp'], Decimal('131.56'))
        self.assertEqual(variant['price'], Decimal('87.96'))
        self.assertEqual(variant['currency'], 'AED')


class LuxuryFeedTests(SimpleTestCase):
    feed = get_feed_format('luxury')

    def row(self, **overrides):
        row = {
            'id': '88',
            'supplier_product_id': 'LD-88',
            'sku': 'GG 101',
            'name': 'Horsebit Loafer',
            'brand': 'Gucci',
            'category_string': 'Women, Shoes, Loafers',
            'selling_price': '410.00',
            'original_price': '520.00',
            'images': json.dumps(['https://cdn.example.com/gg/1.jpg', 'https://cdn.example.com/gg/2.jpg']),
            'size_quantity': json.dumps([{'37': '1'}, {'38.5': '2'}]),
            'gender': json.dumps({'name': 'Women'}),
            'season_one': json.dumps({'name': 'FW24'}),
            'products_tags': json.dumps(['new']),
            'color_detail': 'Black',
            'made_in': 'Italy',
            'ean': '*8051234*',
            'created_at': '2024-06-01 08:00:00',
        }
        row.update(overrides)
        return row

    def test_one_variant_per_size(self):
        record = self.feed.transform([self.row()])

        self.assertEqual([v['sku'] for v in record['variants']], ['GG 101-37', 'GG 101-38-5'])
        self.assertEqual([v['stock'] for v in record['variants']], [1, 2])
        self.assertEqual([v['size'] for v in record['variants']], ['37', '38.5'])
        variant = record['variants'][0]
        self.assertEqual(variant['price'], Decimal('410.00'))
        self.assertEqual(variant['color'], 'Black')
        self.assertEqual(variant['attributes']['ean'], '8051234')
        self.assertNotIn('images', variant)

    def test_product_fields(self):
        record = self.feed.transform([self.row()])

        product = record['product']
        self.assertEqual(product['external_id'], 'LD-88')
        self.assertEqual(product['gender'], 'Women')
        self.assertEqual(product['images'], ['https://cdn.example.com/gg/1.jpg', 'https://cdn.example.com/gg/2.jpg'])
        self.assertEqual(product['attributes']['season_one'], 'FW24')
        self.assertEqual(product['attributes']['tags'], ['new'])
        self.assertEqual(product['attributes']['vendor_created_at'], '2024-06-01T08:00:00+00:00')
        self.assertEqual(record['category_path'], 'Women> Shoes> Loafers')

    def test_single_variant_without_sizes(self):
        record = self.feed.transform([self.row(size_quantity='', qty='4', size_info='')])

        [variant] = record['variants']
        self.assertEqual(variant['sku'], 'GG 101')
        self.assertEqual(variant['stock'], 4)
        self.assertEqual(variant['size'], 'UNI')

    def test_broken_json_columns_are_tolerated(self):
        record = self.feed.transform([self.row(images='[not json', size_quantity='{oops')])

        self.assertEqual(record['product']['images'], [])
        self.assertEqual(len(record['variants']), 1)


class GroupedFeedTests(SimpleTestCase):
    feed = get_feed_format('grouped')

    product_row = {
        'record_type': 'PRODUCT',
        'product_id': '9001',
        'code': 'BD-9001',
        'name': 'Leather Sneaker',
        'brand': 'Roma',
        'Categorie': 'Shoes',
        'Sottocategorie': 'Sneakers',
        'picture 1': 'https://cdn.example.com/bd/1.jpg',
        'picture 2': '',
        'picture 3': 'https://cdn.example.com/bd/3.jpg',
        'sell_price': '59.90',
        'street_price': '99',
        'color': 'White',
        'weight': '0.8',
        'product_quantity': '7',
    }

    def model_row(self, model_id, size, quantity):
        return {
            'record_type': 'MODEL',
            'product_id': '9001',
            'model_id': model_id,
            'model_size': size,
            'model_quantity': quantity,
        }

    def test_models_become_variants(self):
        record = self.feed.transform([
            self.model_row('M-41', '41', '2'),
            dict(self.product_row),
            self.model_row('M-42', '42', '0'),
        ])

        self.assertEqual(record['category_path'], 'Shoes -> Sneakers')
        self.assertEqual(record['product']['sku'], 'BD-9001')
        self.assertEqual(record['product']['images'], [
            'https://cdn.example.com/bd/1.jpg',
            'https://cdn.example.com/bd/3.jpg',
        ])
        self.assertEqual([v['sku'] for v in record['variants']], ['M-41', 'M-42'])
        self.assertEqual([v['stock'] for v in record['variants']], [2, 0])
        self.assertEqual(record['variants'][0]['price'], Decimal('59.90'))
        self.assertEqual(record['variants'][0]['mrp'], Decimal('99.00'))
        self.assertEqual(record['variants'][0]['color'], 'White')
        self.assertEqual(record['variants'][0]['weight'], Decimal('0.800'))

    def test_product_row_alone_is_one_variant(self):
        record = self.feed.transform([dict(self.product_row)])

        [variant] = record['variants']
        self.assertEqual(variant['sku'], 'BD-9001')
        self.assertEqual(variant['stock'], 7)

    def test_group_without_product_row(self):
        with self.assertRaises(RecordValidationError):
            self.feed.transform([self.model_row('M-41', '41', '2')])

    def test_category_without_subcategory(self):
        record = self.feed.transform([dict(self.product_row, Sottocategorie='')])
        self.assertEqual(record['category_path'], 'Shoes')

from decimal import Decimal

from django.test import SimpleTestCase

from _feed_import.pricing import PriceAdjustment, money, to_decimal


class ParsingTests(SimpleTestCase):
    def test_to_decimal(self):
        self.assertEqual(to_decimal('19.99'), Decimal('19.99'))
        self.assertEqual(to_decimal(' 1,299.50 '), Decimal('1299.50'))
        self.assertEqual(to_decimal('19,99'), Decimal('19.99'))
        self.assertEqual(to_decimal(7), Decimal('7'))
        self.assertIsNone(to_decimal(''))
        self.assertIsNone(to_decimal('free'))
        self.assertIsNone(to_decimal('NaN'))

    def test_money_rounds_half_up(self):
        self.assertEqual(money('2.345'), Decimal('2.35'))
        self.assertEqual(money('2.344'), Decimal('2.34'))
        self.assertIsNone(money(None))


class PriceAdjustmentTests(SimpleTestCase):
    def test_convert_then_markup(self):
        pricing = PriceAdjustment('AED', Decimal('4.2'), Decimal('12'))

        # 100 * 4.2 = 420, +12% = 470.40
        self.assertEqual(pricing.convert('100'), Decimal('470.40'))
        self.assertIsNone(pricing.convert(None))

    def test_string_arguments_are_parsed(self):
        pricing = PriceAdjustment(' aed ', '3.67', '0')

        self.assertEqual(pricing.currency, 'AED')
        self.assertEqual(pricing.conversion_rate, Decimal('3.67'))
        self.assertEqual(pricing.convert('10'), Decimal('36.70'))

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            PriceAdjustment('AED', Decimal('0'), Decimal('5'))
        with self.assertRaises(ValueError):
            PriceAdjustment('AED', Decimal('1'), Decimal('-5'))
        with self.assertRaises(ValueError):
            PriceAdjustment('AED', 'abc', Decimal('5'))

    def test_apply_keeps_vendor_prices(self):
        pricing = PriceAdjustment('AED', Decimal('2'), Decimal('0'))
        variant = {'mrp': Decimal('50.00'), 'sale_price': None}

        pricing.apply(variant)

        self.assertEqual(variant['vendor_mrp'], Decimal('50.00'))
        self.assertIsNone(variant['vendor_sale_price'])
        self.assertEqual(variant['mrp'], Decimal('100.00'))
        self.assertIsNone(variant['sale_price'])
        self.assertEqual(variant['price'], Decimal('100.00'))
        self.assertEqual(variant['conversion_rate'], Decimal('2'))

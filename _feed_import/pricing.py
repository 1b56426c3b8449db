from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal('0.01')


def to_decimal(value):
    """
    Lenient Decimal parse. ``"1,299.50"`` -> ``1299.50``, ``"19,99"`` -> ``19.99``;
    anything unparseable -> None.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    text = str(value).strip().replace(' ', '')
    if ',' in text:
        text = text.replace(',', '') if '.' in text else text.replace(',', '.', 1)
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def money(value):
    number = to_decimal(value)
    if number is None:
        return None
    return number.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceAdjustment:
    """Convert vendor prices into the store currency and add a markup."""

    currency: str
    conversion_rate: Decimal
    increment_percent: Decimal = Decimal('0')

    def __post_init__(self):
        rate = to_decimal(self.conversion_rate)
        increment = to_decimal(self.increment_percent)
        if rate is None or rate <= 0:
            raise ValueError(f"conversion rate must be a positive number, got {self.conversion_rate!r}")
        if increment is None or increment < 0:
            raise ValueError(f"increment percent must be zero or more, got {self.increment_percent!r}")
        object.__setattr__(self, 'currency', (self.currency or '').strip().upper())
        object.__setattr__(self, 'conversion_rate', rate)
        object.__setattr__(self, 'increment_percent', increment)

    def convert(self, value):
        amount = to_decimal(value)
        if amount is None:
            return None
        converted = amount * self.conversion_rate
        converted += converted * self.increment_percent / 100
        return converted.quantize(CENT, rounding=ROUND_HALF_UP)

    def apply(self, variant):
        """Rewrite a normalized variant in place; the raw vendor prices move to ``vendor_*``."""
        vendor_mrp = variant.get('mrp')
        vendor_sale_price = variant.get('sale_price')
        variant['vendor_mrp'] = vendor_mrp
        variant['vendor_sale_price'] = vendor_sale_price
        variant['mrp'] = self.convert(vendor_mrp)
        variant['sale_price'] = self.convert(vendor_sale_price)
        variant['price'] = variant['sale_price'] if variant['sale_price'] is not None else variant['mrp']
        variant['currency'] = self.currency
        variant['conversion_rate'] = self.conversion_rate
        return variant

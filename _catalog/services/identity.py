import re

from _catalog.models import Variant

SKU_UNSAFE = re.compile(r'[^A-Za-z0-9]+')


def sku_part(value):
    """``"Dark Blue / 42"`` -> ``"Dark-Blue-42"``."""
    return SKU_UNSAFE.sub('-', str(value or '')).strip('-')


class SkuProvider:
    """Hands out SKUs for variants that arrive without one."""

    def variant_sku(self, product, variant, position, reserved=()):
        raise NotImplementedError


class DeterministicSkuProvider(SkuProvider):
    """
    ``<product sku>-<color>-<size>``, or ``<product sku>-v<position>`` when the
    variant has neither. A candidate already reserved by the same record, or
    owned by another product's live variant, gets ``-2``, ``-3`` ... appended.
    The same input always yields the same SKU, so re-imports land on the
    variant they created the first time.
    """

    def variant_sku(self, product, variant, position, reserved=()):
        base = product.sku or product.external_id or str(product.pk)
        parts = [sku_part(variant.get('color')), sku_part(variant.get('size'))]
        parts = [part for part in parts if part]
        stem = '-'.join([base, *parts]) if parts else f'{base}-v{position}'

        candidate = stem
        n = 1
        while candidate in reserved or self.is_taken(candidate, product):
            n += 1
            candidate = f'{stem}-{n}'
        return candidate

    def is_taken(self, sku, product):
        return Variant.objects.live().filter(sku=sku).exclude(product=product).exists()

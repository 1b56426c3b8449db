class CatalogError(Exception):
    """Base class for errors raised while writing to the catalog."""


class CategoryPathError(CatalogError):
    """A category path could not be materialized."""


class RecordValidationError(CatalogError):
    """A normalized record is missing the fields needed to identify it."""


class SkuConflictError(CatalogError):
    """A variant SKU is already owned by a different product."""

    def __init__(self, sku, owner_id=None):
        self.sku = sku
        self.owner_id = owner_id
        super().__init__(f"SKU {sku!r} already belongs to product {owner_id}")

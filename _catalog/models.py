import uuid

from django.db import models
from django.db.models import Q


LIVE = Q(deleted_at__isnull=True)


class LiveQuerySet(models.QuerySet):
    def live(self):
        return self.filter(deleted_at__isnull=True)


class CategoryTreeState(models.Model):
    """Singleton row locked by every writer that changes nested-set bounds."""

    revision = models.PositiveBigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Category tree state"
        verbose_name_plural = "Category tree state"

    def __str__(self):
        return f"Category tree r{self.revision}"

    @classmethod
    def lock(cls):
        """Take the tree write lock for the rest of the current transaction."""
        obj, _ = cls.objects.select_for_update().get_or_create(pk=1)
        return obj

    @classmethod
    def bump(cls):
        cls.objects.filter(pk=1).update(revision=models.F('revision') + 1)


class Category(models.Model):
    """
    Category node stored twice over: as a materialized ``path`` of slugs
    (``women/dresses/mini``) and as nested-set bounds. A is an ancestor of B
    iff ``A.lft < B.lft and B.rgt < A.rgt``.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    vendor = models.CharField(
        max_length=64,
        blank=True,
        default='',
        db_index=True,
        help_text="Owner scope of the path; blank for the shared catalog.",
    )
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255)
    parent = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='children',
    )
    path = models.CharField(max_length=1024)
    lft = models.PositiveIntegerField(db_index=True)
    rgt = models.PositiveIntegerField(db_index=True)
    is_active = models.BooleanField(default=True)
    metadata = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = LiveQuerySet.as_manager()

    class Meta:
        ordering = ('lft',)
        verbose_name_plural = "Categories"
        constraints = [
            models.UniqueConstraint(
                fields=['vendor', 'path'],
                condition=LIVE,
                name='uq_category_live_path',
            ),
            models.UniqueConstraint(
                fields=['parent', 'slug'],
                condition=LIVE,
                name='uq_category_live_parent_slug',
            ),
        ]

    def __str__(self):
        return self.path

    def is_ancestor_of(self, other) -> bool:
        return self.lft < other.lft and other.rgt < self.rgt

    def get_descendants(self):
        """Whole subtree below this node in one range scan."""
        return Category.objects.live().filter(lft__gt=self.lft, rgt__lt=self.rgt)

    def get_ancestors(self):
        """Root first."""
        return Category.objects.live().filter(lft__lt=self.lft, rgt__gt=self.rgt).order_by('lft')


class Product(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    vendor = models.CharField(max_length=64, blank=True, default='', db_index=True)
    external_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Product id in the vendor's feed.",
    )
    sku = models.CharField(max_length=255, null=True, blank=True)
    name = models.CharField(max_length=512)
    title = models.CharField(max_length=512, blank=True)
    short_description = models.TextField(blank=True)
    description = models.TextField(blank=True)
    brand_name = models.CharField(max_length=255, blank=True, db_index=True)
    gender = models.CharField(max_length=50, blank=True)
    supplier = models.CharField(max_length=255, blank=True)
    country_of_origin = models.CharField(max_length=128, blank=True)
    default_category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='default_products',
    )
    categories = models.ManyToManyField(
        Category,
        through='ProductCategory',
        blank=True,
        related_name='products',
    )
    attributes = models.JSONField(default=dict, blank=True)
    cod_available = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = LiveQuerySet.as_manager()

    class Meta:
        ordering = ('name',)
        constraints = [
            models.UniqueConstraint(
                fields=['sku'],
                condition=LIVE & Q(sku__isnull=False),
                name='uq_product_live_sku',
            ),
            models.UniqueConstraint(
                fields=['vendor', 'external_id'],
                condition=LIVE & Q(external_id__isnull=False),
                name='uq_product_live_external_id',
            ),
        ]

    def __str__(self):
        return self.name


class ProductCategory(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='category_links')
    category = models.ForeignKey(Category, on_delete=models.CASCADE, related_name='product_links')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['product', 'category'], name='uq_product_category'),
        ]

    def __str__(self):
        return f"{self.product_id} → {self.category_id}"


class Variant(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='variants')
    sku = models.CharField(max_length=255)
    barcode = models.CharField(max_length=128, blank=True)
    vendor_product_id = models.CharField(max_length=255, blank=True)

    # Pricing
    price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True, db_index=True)
    mrp = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    sale_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    vendor_mrp = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    vendor_sale_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, blank=True)
    conversion_rate = models.DecimalField(max_digits=14, decimal_places=6, null=True, blank=True)

    stock = models.IntegerField(default=0)
    weight = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True)
    color = models.CharField(max_length=128, blank=True, db_index=True)
    size = models.CharField(max_length=128, blank=True, db_index=True)
    normalized_color = models.CharField(max_length=128, blank=True)
    normalized_size = models.CharField(max_length=128, blank=True)
    attributes = models.JSONField(default=dict, blank=True)
    images = models.JSONField(default=list, blank=True)
    country_of_origin = models.CharField(max_length=128, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = LiveQuerySet.as_manager()

    class Meta:
        ordering = ('sku',)
        constraints = [
            models.UniqueConstraint(fields=['sku'], condition=LIVE, name='uq_variant_live_sku'),
        ]

    def __str__(self):
        return self.sku


class InventoryTransaction(models.Model):
    """Append-only stock ledger; rows are never updated."""

    INITIAL_IMPORT = 'initial_import'

    variant = models.ForeignKey(Variant, on_delete=models.CASCADE, related_name='inventory_transactions')
    change = models.IntegerField()
    reason = models.CharField(max_length=64)
    reference = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ('created_at',)

    def __str__(self):
        return f"{self.variant_id} {self.change:+d} ({self.reason})"


class Media(models.Model):
    """
    Image attached to a variant, or to the product when ``variant`` is null.
    Variant rows are unique per (url, variant); product-level rows per url.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, blank=True)
    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='media',
    )
    variant = models.ForeignKey(
        Variant,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='media',
    )
    url = models.URLField(max_length=2048)
    type = models.CharField(max_length=32, default='image')
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = LiveQuerySet.as_manager()

    class Meta:
        ordering = ('created_at',)
        verbose_name_plural = "Media"
        constraints = [
            models.UniqueConstraint(
                fields=['url', 'variant'],
                condition=LIVE & Q(variant__isnull=False),
                name='uq_media_live_variant_url',
            ),
            models.UniqueConstraint(
                fields=['url'],
                condition=LIVE & Q(variant__isnull=True),
                name='uq_media_live_product_url',
            ),
        ]

    def __str__(self):
        return self.url


class ProductDynamicFilter(models.Model):
    BRAND = 'brand'
    COLOR = 'color'
    SIZE = 'size'
    FILTER_TYPE_CHOICES = [
        (BRAND, 'Brand'),
        (COLOR, 'Color'),
        (SIZE, 'Size'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='dynamic_filters')
    filter_type = models.CharField(max_length=32, choices=FILTER_TYPE_CHOICES)
    filter_value = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['filter_type', 'filter_value'], name='dynfilter_type_value_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'filter_type', 'filter_value'],
                name='uq_product_dynamic_filter',
            ),
        ]

    def __str__(self):
        return f"{self.filter_type}: {self.filter_value}"

from django.contrib import admin
from django.utils.html import format_html

from .models import (
    Category,
    CategoryTreeState,
    InventoryTransaction,
    Media,
    Product,
    ProductCategory,
    ProductDynamicFilter,
    Variant,
)


class LiveListFilter(admin.SimpleListFilter):
    title = 'deleted'
    parameter_name = 'deleted'

    def lookups(self, request, model_admin):
        return (
            ('no', 'Live'),
            ('yes', 'Soft-deleted'),
        )

    def queryset(self, request, queryset):
        val = self.value()
        if val == 'no':
            return queryset.filter(deleted_at__isnull=True)
        if val == 'yes':
            return queryset.filter(deleted_at__isnull=False)
        return queryset


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ('path', 'name', 'vendor', 'lft', 'rgt', 'is_active', 'deleted_at')
    list_filter = ('vendor', 'is_active', LiveListFilter)
    search_fields = ('name', 'path')
    ordering = ('lft',)
    # Bounds are maintained by the tree services only
    readonly_fields = ('path', 'lft', 'rgt', 'created_at', 'deleted_at')


@admin.register(CategoryTreeState)
class CategoryTreeStateAdmin(admin.ModelAdmin):
    list_display = ('revision', 'updated_at')

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class VariantInline(admin.TabularInline):
    model = Variant
    extra = 0
    fields = ('sku', 'price', 'mrp', 'sale_price', 'stock', 'color', 'size', 'is_active')
    show_change_link = True


class ProductCategoryInline(admin.TabularInline):
    model = ProductCategory
    extra = 0
    autocomplete_fields = ('category',)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('name', 'sku', 'external_id', 'vendor', 'brand_name', 'default_category', 'is_active', 'updated_at')
    list_filter = ('vendor', 'is_active', LiveListFilter)
    search_fields = ('name', 'sku', 'external_id', 'brand_name')
    ordering = ('name',)
    list_per_page = 50
    inlines = (VariantInline, ProductCategoryInline)


@admin.register(Variant)
class VariantAdmin(admin.ModelAdmin):
    list_display = ('sku', 'product', 'price', 'stock', 'color', 'size', 'is_active')
    list_filter = ('is_active', LiveListFilter)
    search_fields = ('sku', 'barcode', 'product__name')
    ordering = ('sku',)
    raw_id_fields = ('product',)


@admin.register(InventoryTransaction)
class InventoryTransactionAdmin(admin.ModelAdmin):
    """The ledger is append-only: entries are viewed, never edited."""
    list_display = ('variant', 'change', 'reason', 'reference', 'created_at')
    list_filter = ('reason',)
    search_fields = ('variant__sku', 'reference')

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Media)
class MediaAdmin(admin.ModelAdmin):
    list_display = ('image_link', 'url', 'product', 'variant', 'type', 'created_at')
    list_filter = ('type', LiveListFilter)
    search_fields = ('url', 'product__name', 'variant__sku')
    raw_id_fields = ('product', 'variant')

    @admin.display(description='Image')
    def image_link(self, obj):
        if obj.url:
            return format_html('<img src="{}" width="50" height="50" />', obj.url)
        return 'No image'


@admin.register(ProductDynamicFilter)
class ProductDynamicFilterAdmin(admin.ModelAdmin):
    list_display = ('product', 'filter_type', 'filter_value')
    list_filter = ('filter_type',)
    search_fields = ('filter_value', 'product__name')

import uuid

import django.db.models.deletion
from django.db import migrations, models


def seed_tree_state(apps, schema_editor):
    CategoryTreeState = apps.get_model("_catalog", "CategoryTreeState")
    CategoryTreeState.objects.get_or_create(pk=1)


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="CategoryTreeState",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("revision", models.PositiveBigIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Category tree state",
                "verbose_name_plural": "Category tree state",
            },
        ),
        migrations.CreateModel(
            name="Category",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "vendor",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        default="",
                        help_text="Owner scope of the path; blank for the shared catalog.",
                        max_length=64,
                    ),
                ),
                ("name", models.CharField(max_length=255)),
                ("slug", models.SlugField(max_length=255)),
                ("path", models.CharField(max_length=1024)),
                ("lft", models.PositiveIntegerField(db_index=True)),
                ("rgt", models.PositiveIntegerField(db_index=True)),
                ("is_active", models.BooleanField(default=True)),
                ("metadata", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("deleted_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="children",
                        to="_catalog.category",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "Categories",
                "ordering": ("lft",),
            },
        ),
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("vendor", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                (
                    "external_id",
                    models.CharField(
                        blank=True,
                        help_text="Product id in the vendor's feed.",
                        max_length=255,
                        null=True,
                    ),
                ),
                ("sku", models.CharField(blank=True, max_length=255, null=True)),
                ("name", models.CharField(max_length=512)),
                ("title", models.CharField(blank=True, max_length=512)),
                ("short_description", models.TextField(blank=True)),
                ("description", models.TextField(blank=True)),
                ("brand_name", models.CharField(blank=True, db_index=True, max_length=255)),
                ("gender", models.CharField(blank=True, max_length=50)),
                ("supplier", models.CharField(blank=True, max_length=255)),
                ("country_of_origin", models.CharField(blank=True, max_length=128)),
                ("attributes", models.JSONField(blank=True, default=dict)),
                ("cod_available", models.BooleanField(default=True)),
                ("is_active", models.BooleanField(db_index=True, default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("deleted_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                (
                    "default_category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="default_products",
                        to="_catalog.category",
                    ),
                ),
            ],
            options={
                "ordering": ("name",),
            },
        ),
        migrations.CreateModel(
            name="ProductCategory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "category",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="product_links",
                        to="_catalog.category",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="category_links",
                        to="_catalog.product",
                    ),
                ),
            ],
        ),
        migrations.AddField(
            model_name="product",
            name="categories",
            field=models.ManyToManyField(
                blank=True,
                related_name="products",
                through="_catalog.ProductCategory",
                to="_catalog.category",
            ),
        ),
        migrations.CreateModel(
            name="Variant",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("sku", models.CharField(max_length=255)),
                ("barcode", models.CharField(blank=True, max_length=128)),
                ("vendor_product_id", models.CharField(blank=True, max_length=255)),
                ("price", models.DecimalField(blank=True, db_index=True, decimal_places=2, max_digits=12, null=True)),
                ("mrp", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("sale_price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("vendor_mrp", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("vendor_sale_price", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("currency", models.CharField(blank=True, max_length=3)),
                ("conversion_rate", models.DecimalField(blank=True, decimal_places=6, max_digits=14, null=True)),
                ("stock", models.IntegerField(default=0)),
                ("weight", models.DecimalField(blank=True, decimal_places=3, max_digits=10, null=True)),
                ("color", models.CharField(blank=True, db_index=True, max_length=128)),
                ("size", models.CharField(blank=True, db_index=True, max_length=128)),
                ("normalized_color", models.CharField(blank=True, max_length=128)),
                ("normalized_size", models.CharField(blank=True, max_length=128)),
                ("attributes", models.JSONField(blank=True, default=dict)),
                ("images", models.JSONField(blank=True, default=list)),
                ("country_of_origin", models.CharField(blank=True, max_length=128)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("deleted_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="variants",
                        to="_catalog.product",
                    ),
                ),
            ],
            options={
                "ordering": ("sku",),
            },
        ),
        migrations.CreateModel(
            name="InventoryTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("change", models.IntegerField()),
                ("reason", models.CharField(max_length=64)),
                ("reference", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "variant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="inventory_transactions",
                        to="_catalog.variant",
                    ),
                ),
            ],
            options={
                "ordering": ("created_at",),
            },
        ),
        migrations.CreateModel(
            name="Media",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(blank=True, max_length=255)),
                ("url", models.URLField(max_length=2048)),
                ("type", models.CharField(default="image", max_length=32)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("deleted_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                (
                    "product",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="media",
                        to="_catalog.product",
                    ),
                ),
                (
                    "variant",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="media",
                        to="_catalog.variant",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "Media",
                "ordering": ("created_at",),
            },
        ),
        migrations.CreateModel(
            name="ProductDynamicFilter",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "filter_type",
                    models.CharField(
                        choices=[("brand", "Brand"), ("color", "Color"), ("size", "Size")],
                        max_length=32,
                    ),
                ),
                ("filter_value", models.CharField(max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="dynamic_filters",
                        to="_catalog.product",
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["filter_type", "filter_value"], name="dynfilter_type_value_idx")],
            },
        ),
        migrations.AddConstraint(
            model_name="category",
            constraint=models.UniqueConstraint(
                condition=models.Q(("deleted_at__isnull", True)),
                fields=("vendor", "path"),
                name="uq_category_live_path",
            ),
        ),
        migrations.AddConstraint(
            model_name="category",
            constraint=models.UniqueConstraint(
                condition=models.Q(("deleted_at__isnull", True)),
                fields=("parent", "slug"),
                name="uq_category_live_parent_slug",
            ),
        ),
        migrations.AddConstraint(
            model_name="product",
            constraint=models.UniqueConstraint(
                condition=models.Q(("deleted_at__isnull", True), ("sku__isnull", False)),
                fields=("sku",),
                name="uq_product_live_sku",
            ),
        ),
        migrations.AddConstraint(
            model_name="product",
            constraint=models.UniqueConstraint(
                condition=models.Q(("deleted_at__isnull", True), ("external_id__isnull", False)),
                fields=("vendor", "external_id"),
                name="uq_product_live_external_id",
            ),
        ),
        migrations.AddConstraint(
            model_name="productcategory",
            constraint=models.UniqueConstraint(fields=("product", "category"), name="uq_product_category"),
        ),
        migrations.AddConstraint(
            model_name="variant",
            constraint=models.UniqueConstraint(
                condition=models.Q(("deleted_at__isnull", True)),
                fields=("sku",),
                name="uq_variant_live_sku",
            ),
        ),
        migrations.AddConstraint(
            model_name="media",
            constraint=models.UniqueConstraint(
                condition=models.Q(("deleted_at__isnull", True), ("variant__isnull", False)),
                fields=("url", "variant"),
                name="uq_media_live_variant_url",
            ),
        ),
        migrations.AddConstraint(
            model_name="media",
            constraint=models.UniqueConstraint(
                condition=models.Q(("deleted_at__isnull", True), ("variant__isnull", True)),
                fields=("url",),
                name="uq_media_live_product_url",
            ),
        ),
        migrations.RunPython(seed_tree_state, migrations.RunPython.noop),
    ]

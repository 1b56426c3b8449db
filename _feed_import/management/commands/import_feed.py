"""
Import a vendor product feed (CSV) into the catalog.

Usage:
    python manage.py import_feed products.csv
    python manage.py import_feed ld_export.csv --format luxury --vendor ld
    python manage.py import_feed bdroppy.csv --format grouped --workers 8 --high-water 200
    python manage.py import_feed ld_export.csv --format luxury \
        --currency AED --conversion-rate 4.2 --increment-percent 12

Every run is recorded as an ImportRun. Units that fail are written to a
JSON-lines error file whose path is printed at the end.
"""

from pathlib import Path

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from tqdm import tqdm

from _feed_import.exceptions import FeedError, ImportAborted
from _feed_import.ingestion import FeedImporter
from _feed_import.models import ImportRun
from _feed_import.pricing import PriceAdjustment
from _feed_import.transformers import FEED_FORMATS


class Command(BaseCommand):
    help = "Import a vendor CSV feed into the catalog."

    def add_arguments(self, parser):
        parser.add_argument("csv_path", type=str, help="Path of the CSV feed to import.")
        parser.add_argument(
            "--format",
            dest="feed_format",
            choices=sorted(FEED_FORMATS),
            default="generic",
            help="Column layout of the feed (default: generic).",
        )
        parser.add_argument(
            "--vendor",
            default="",
            help="Vendor scope for product external ids and categories.",
        )
        parser.add_argument(
            "--workers",
            type=int,
            default=settings.IMPORT_WORKERS,
            help="Worker threads; 0 imports on the main thread.",
        )
        parser.add_argument(
            "--high-water",
            type=int,
            default=settings.IMPORT_HIGH_WATER,
            help="Maximum number of units queued or running at once.",
        )
        parser.add_argument(
            "--error-dir",
            default=settings.IMPORT_ERROR_DIR,
            help="Directory for the per-run error file.",
        )
        parser.add_argument("--currency", help="Store currency code, e.g. AED.")
        parser.add_argument("--conversion-rate", help="Vendor-to-store currency rate.")
        parser.add_argument("--increment-percent", help="Markup added after conversion.")
        parser.add_argument(
            "--no-progress",
            action="store_true",
            help="Disable the progress bar.",
        )

    def handle(self, *args, **options):
        csv_path = Path(options["csv_path"])
        if not csv_path.exists():
            raise CommandError(f"CSV file not found at {csv_path}")
        if options["workers"] < 0:
            raise CommandError("--workers cannot be negative")

        pricing = self.build_pricing(options)
        feed_format = options["feed_format"]
        vendor = options["vendor"]

        run = ImportRun.objects.create(
            feed_format=feed_format,
            vendor=vendor,
            source_name=str(csv_path),
        )
        self.stdout.write(self.style.NOTICE(f"Importing {csv_path} ({feed_format} feed)..."))

        with tqdm(desc="Importing", unit="unit", disable=options["no_progress"]) as pbar:
            importer = FeedImporter(
                feed_format,
                workers=options["workers"],
                high_water=options["high_water"],
                error_dir=options["error_dir"],
                pricing=pricing,
                vendor=vendor,
                progress=pbar.update,
                reference=f"import-run-{run.pk}",
            )
            try:
                with csv_path.open(newline="", encoding="utf-8-sig") as fh:
                    summary = importer.run(fh, source_name=csv_path.name)
            except ImportAborted as exc:
                run.finish(ImportRun.FAILED, exc.summary, str(exc))
                raise CommandError(str(exc)) from exc
            except (FeedError, UnicodeDecodeError) as exc:
                run.finish(ImportRun.FAILED, importer.summary, str(exc))
                raise CommandError(f"Could not read feed: {exc}") from exc

        run.finish(ImportRun.COMPLETED, summary)

        self.stdout.write(
            f"Rows: {summary['rows']}, units: {summary['units']}, "
            f"products created: {summary['products_created']}, updated: {summary['products_updated']}."
        )
        if summary["errors"]:
            self.stderr.write(
                self.style.ERROR(f"{summary['errors']} unit(s) failed. Details in {summary['error_log']}")
            )
        self.stdout.write(
            self.style.SUCCESS(f"Done. Processed: {summary['processed']}, Errors: {summary['errors']}.")
        )

    def build_pricing(self, options):
        values = (options["currency"], options["conversion_rate"], options["increment_percent"])
        if not any(value is not None for value in values):
            return None
        if any(value is None for value in values):
            raise CommandError("--currency, --conversion-rate and --increment-percent must be given together")
        try:
            return PriceAdjustment(*values)
        except ValueError as exc:
            raise CommandError(str(exc)) from exc

"""
Recompute the nested-set bounds of every category from its parent link.

Usage:
    python manage.py rebuild_category_tree
    python manage.py rebuild_category_tree --check
    python manage.py rebuild_category_tree --dry-run
"""

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from _catalog.exceptions import CatalogError
from _catalog.services.category_tree import interval_violations, rebuild_intervals


class Command(BaseCommand):
    help = "Rebuild category lft/rgt bounds from parent links."

    def add_arguments(self, parser):
        parser.add_argument(
            "--check",
            action="store_true",
            help="Only report nodes whose interval or path disagrees with their parent.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Rebuild inside a transaction and roll it back, reporting what would change.",
        )

    def handle(self, *args, **options):
        if options["check"]:
            problems = interval_violations()
            for node, problem in problems:
                self.stdout.write(f"{node.path}: {problem}")
            if problems:
                raise CommandError(f"{len(problems)} category tree problem(s) found.")
            self.stdout.write(self.style.SUCCESS("Category tree is consistent."))
            return

        dry_run = options["dry_run"]
        try:
            with transaction.atomic():
                changed = rebuild_intervals()
                if dry_run:
                    transaction.set_rollback(True)
        except CatalogError as exc:
            raise CommandError(str(exc)) from exc

        if dry_run:
            self.stdout.write(self.style.WARNING(f"Dry run: {changed} category row(s) would change."))
        else:
            self.stdout.write(self.style.SUCCESS(f"Rebuilt category tree: {changed} row(s) changed."))

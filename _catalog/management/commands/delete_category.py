from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from _catalog.models import Category
from _catalog.services.category_tree import delete_subtree


class Command(BaseCommand):
    help = "Soft-delete a category together with its whole subtree."

    def add_arguments(self, parser):
        parser.add_argument("category_id", help="UUID of the category to delete.")

    def handle(self, *args, **options):
        category_id = options["category_id"]
        try:
            count = delete_subtree(category_id)
        except (Category.DoesNotExist, ValidationError) as exc:
            raise CommandError(f"No live category with id {category_id!r}") from exc

        self.stdout.write(self.style.SUCCESS(f"Deleted {count} categor{'y' if count == 1 else 'ies'}."))

"""
Category tree maintenance.

Every category lives twice: as a materialized slug path (``women/dresses``)
and as nested-set bounds (``lft``/``rgt``). Path lookups find nodes, the
bounds answer subtree and ancestor questions in a single range scan.

Writers that move bounds hold the ``CategoryTreeState`` row lock for the rest
of their transaction, so two imports never shift the same interval at once.
"""

import logging
import re
import time
from collections import defaultdict

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Max
from django.utils import timezone
from django.utils.text import slugify

from _catalog.exceptions import CatalogError, CategoryPathError
from _catalog.models import Category, CategoryTreeState

logger = logging.getLogger(__name__)

# "Women -> Dresses", "Women > Dresses" and "women/dresses" all mean the same
PATH_SEPARATORS = re.compile(r'->|>|/')


def split_path(raw_path):
    """Ordered, trimmed, non-empty segments of a delimited category path."""
    if not raw_path:
        return []
    segments = []
    for part in PATH_SEPARATORS.split(str(raw_path)):
        name = ' '.join(part.split())[:255]
        if name:
            segments.append(name)
    return segments


def segment_slug(name):
    return slugify(name)[:150].strip('-') or 'category'


def same_name(a, b):
    return ' '.join(a.split()).casefold() == ' '.join(b.split()).casefold()


class CategoryPathResolver:
    """
    Turns ``"Women -> Dresses -> Mini"`` into a chain of category nodes,
    reusing what exists and creating what doesn't.

    Concurrent resolvers may race on the same path. A unique violation on
    insert is not an error: the winner is re-read and reused when it carries
    the same display name. A different name behind the same slug is a slug
    collision and the segment moves on to ``<slug>-1``, ``<slug>-2`` ...
    """

    def __init__(self, vendor='', max_attempts=None, backoff=None):
        self.vendor = vendor or ''
        self.max_attempts = max_attempts or settings.IMPORT_SLUG_ATTEMPTS
        self.backoff = settings.IMPORT_RETRY_BACKOFF if backoff is None else backoff

    def resolve(self, raw_path):
        """Return the id of the deepest node of ``raw_path``, or None for an empty path."""
        node = self.resolve_node(raw_path)
        return node.pk if node is not None else None

    def resolve_node(self, raw_path):
        segments = split_path(raw_path)
        if not segments:
            return None

        node = None
        with transaction.atomic():
            for name in segments:
                node = self._resolve_segment(node, name)
        return node

    def _resolve_segment(self, parent, name):
        base_slug = segment_slug(name)
        suffix = 0

        for attempt in range(1, self.max_attempts + 1):
            slug = base_slug if suffix == 0 else f'{base_slug}-{suffix}'
            path = f'{parent.path}/{slug}' if parent is not None else slug

            node = self._find_live(path)
            if node is None:
                node, created = self._insert_node(parent, name, slug, path)
                if created:
                    return self._canonical(node)
                if node is None:
                    # Conflicting row disappeared before it could be read; try the same slug again.
                    self._sleep(attempt)
                    continue

            if same_name(node.name, name):
                return self._canonical(node)

            logger.debug(
                'slug collision at %s (%r vs %r)', path, node.name, name,
                extra={'category_path': path, 'attempt': attempt},
            )
            suffix += 1
            self._sleep(attempt)

        raise CategoryPathError(
            f"No free slug for {name!r} under "
            f"{parent.path if parent is not None else '<root>'} after {self.max_attempts} attempts"
        )

    def _find_live(self, path):
        return Category.objects.live().filter(vendor=self.vendor, path=path).first()

    def _canonical(self, node):
        """Re-read the node so later segments build on the stored path."""
        try:
            return Category.objects.live().get(pk=node.pk)
        except Category.DoesNotExist:
            raise CategoryPathError(f"Category {node.path} was deleted while being resolved")

    def _insert_node(self, parent, name, slug, path):
        """
        Insert one node under the tree lock.

        Returns ``(node, created)``. When the insert loses a race the row that
        won is returned with ``created=False`` (or ``None`` if it is already gone).
        """
        try:
            with transaction.atomic():
                CategoryTreeState.lock()

                existing = self._find_live(path)
                if existing is not None:
                    return existing, False

                if parent is None:
                    top = Category.objects.aggregate(top=Max('rgt'))['top'] or 0
                    lft = top + 1
                else:
                    parent_rgt = (
                        Category.objects.live()
                        .filter(pk=parent.pk)
                        .values_list('rgt', flat=True)
                        .first()
                    )
                    if parent_rgt is None:
                        raise CategoryPathError(f"Parent category {parent.path} no longer exists")
                    lft = parent_rgt
                    Category.objects.filter(rgt__gte=lft).update(rgt=F('rgt') + 2)
                    Category.objects.filter(lft__gt=lft).update(lft=F('lft') + 2)

                node = Category.objects.create(
                    vendor=self.vendor,
                    name=name,
                    slug=slug,
                    parent=parent,
                    path=path,
                    lft=lft,
                    rgt=lft + 1,
                )
                CategoryTreeState.bump()
        except IntegrityError:
            logger.debug('lost insert race for %s', path, extra={'category_path': path})
            return self._find_live(path), False

        logger.info('created category %s', path, extra={'category_path': path, 'vendor': self.vendor})
        return node, True

    def _sleep(self, attempt):
        if self.backoff:
            time.sleep(self.backoff * attempt)


def descendants(category):
    return category.get_descendants()


def ancestors(category):
    return category.get_ancestors()


@transaction.atomic
def delete_subtree(category_id):
    """Soft-delete a node and everything inside its interval. Returns the row count."""
    CategoryTreeState.lock()
    node = Category.objects.live().get(pk=category_id)
    count = (
        Category.objects.live()
        .filter(lft__gte=node.lft, rgt__lte=node.rgt)
        .update(deleted_at=timezone.now(), is_active=False)
    )
    CategoryTreeState.bump()
    logger.info(
        'deleted category subtree %s (%d nodes)', node.path, count,
        extra={'category_path': node.path},
    )
    return count


@transaction.atomic
def rebuild_intervals():
    """
    Recompute every ``lft``/``rgt`` from the parent links, depth first, with
    siblings kept in their current order. Returns the number of rows changed.
    """
    CategoryTreeState.lock()

    rows = list(Category.objects.order_by('lft', 'created_at').values_list('pk', 'parent_id', 'lft', 'rgt'))
    known = {pk for pk, _, _, _ in rows}
    children = defaultdict(list)
    for pk, parent_id, _, _ in rows:
        children[parent_id if parent_id in known else None].append(pk)

    bounds = {}
    counter = 0
    stack = [(pk, False) for pk in reversed(children[None])]
    while stack:
        pk, closing = stack.pop()
        counter += 1
        if closing:
            bounds[pk][1] = counter
            continue
        bounds[pk] = [counter, None]
        stack.append((pk, True))
        stack.extend((child, False) for child in reversed(children[pk]))

    unreachable = known - bounds.keys()
    if unreachable:
        raise CatalogError(f"{len(unreachable)} categories sit in a parent cycle and cannot be placed")

    changed = [
        Category(pk=pk, lft=bounds[pk][0], rgt=bounds[pk][1])
        for pk, _, lft, rgt in rows
        if (lft, rgt) != tuple(bounds[pk])
    ]
    if changed:
        Category.objects.bulk_update(changed, ['lft', 'rgt'], batch_size=500)
    CategoryTreeState.bump()

    logger.info('rebuilt category intervals: %d of %d rows changed', len(changed), len(rows))
    return len(changed)


def interval_violations():
    """List ``(category, problem)`` pairs for live nodes that break the tree invariants."""
    problems = []
    for node in Category.objects.live().select_related('parent'):
        if node.lft >= node.rgt:
            problems.append((node, f'empty interval [{node.lft}, {node.rgt}]'))

        parent = node.parent
        if parent is None or parent.deleted_at is not None:
            continue
        if not parent.is_ancestor_of(node):
            problems.append((node, f'interval [{node.lft}, {node.rgt}] outside parent {parent.path}'))
        if node.path != f'{parent.path}/{node.slug}':
            problems.append((node, f'path does not extend parent path {parent.path}'))
    return problems

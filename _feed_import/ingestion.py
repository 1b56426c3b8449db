"""
Streaming feed ingestion.

``FeedImporter.run`` reads a CSV feed row by row, cuts it into units of work
(one row, or every row of a grouped product), and pushes each unit through
transform -> reconcile on a bounded thread pool. A unit that fails is rolled
back, logged and written to the batch error file; its siblings carry on.
Only a store that keeps failing (or a feed that cannot be read at all) ends
the batch early.
"""

import csv
import json
import logging
import threading
import time
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from django.conf import settings
from django.db import InterfaceError, OperationalError, close_old_connections, connection
from django.utils import timezone
from django.utils.text import slugify

from _catalog.exceptions import CatalogError
from _catalog.services.reconciler import CREATED, ProductReconciler

from .exceptions import FeedError, ImportAborted
from .transformers import get_feed_format

logger = logging.getLogger(__name__)

WorkUnit = namedtuple('WorkUnit', 'key line rows')

SAMPLE_ROWS = 3


class ErrorLog:
    """Append-only JSON-lines file with one entry per failed unit."""

    def __init__(self, directory, label):
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        stamp = timezone.now().strftime('%Y%m%dT%H%M%S_%fZ')
        self.path = directory / f'import_errors_{slugify(label) or "feed"}_{stamp}.jsonl'
        self.path.touch()
        self._lock = threading.Lock()

    def write(self, unit, exc):
        entry = {
            'unit': unit.key,
            'line': unit.line,
            'error': str(exc),
            'error_type': type(exc).__name__,
            'rows': unit.rows[:SAMPLE_ROWS],
        }
        line = json.dumps(entry, default=str, ensure_ascii=False)
        with self._lock, self.path.open('a', encoding='utf-8') as fh:
            fh.write(line + '\n')


class FeedImporter:
    """
    Import one feed.

    ``workers=0`` runs every unit inline on the calling thread. Otherwise at
    most ``high_water`` units are queued or running at once; the reader blocks
    (and stops pulling rows from the source) until a slot frees up.
    """

    def __init__(
        self,
        feed_format,
        reconciler=None,
        workers=None,
        high_water=None,
        error_dir=None,
        pricing=None,
        vendor='',
        progress=None,
        reference='',
    ):
        self.feed = get_feed_format(feed_format) if isinstance(feed_format, str) else feed_format
        self.vendor = vendor or ''
        self.reconciler = reconciler or ProductReconciler(vendor=self.vendor, reference=reference)
        self.workers = settings.IMPORT_WORKERS if workers is None else workers
        if self.workers > 1 and connection.vendor == 'sqlite':
            # SQLite takes one writer at a time and fails lock upgrades instead of waiting
            logger.warning(
                'SQLite backend: running %d import workers as 1', self.workers,
                extra={'feed_format': self.feed.name, 'vendor': self.vendor},
            )
            self.workers = 1
        self.high_water = max(1, settings.IMPORT_HIGH_WATER if high_water is None else high_water)
        self.error_dir = error_dir or settings.IMPORT_ERROR_DIR
        self.pricing = pricing
        self.progress = progress
        self.unit_retries = settings.IMPORT_UNIT_RETRIES
        self.backoff = settings.IMPORT_RETRY_BACKOFF

        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._fatal = None
        self.summary = {}
        self.error_log = None

    def stop(self):
        """Stop dispatching new units; whatever is already queued still runs."""
        self._stop.set()

    def run(self, stream, source_name=''):
        self._stop.clear()
        self._fatal = None
        self.error_log = ErrorLog(self.error_dir, self.vendor or self.feed.name)
        self.summary = {
            'processed': 0,
            'errors': 0,
            'rows': 0,
            'units': 0,
            'products_created': 0,
            'products_updated': 0,
            'error_log': str(self.error_log.path),
            'stopped': False,
        }
        log_context = {'feed_format': self.feed.name, 'vendor': self.vendor, 'source': source_name}
        logger.info('import started: %s', source_name or '<stream>', extra=log_context)

        if self.workers > 0:
            self._run_pool(stream)
        else:
            self._run_inline(stream)

        self.summary['stopped'] = self._stop.is_set()
        if self._fatal is not None:
            logger.error('import aborted: %s', self._fatal, extra=log_context)
            raise ImportAborted(f"Import aborted after repeated database errors: {self._fatal}", dict(self.summary))

        logger.info(
            'import finished: %d processed, %d errors, %d rows',
            self.summary['processed'], self.summary['errors'], self.summary['rows'],
            extra=log_context,
        )
        return dict(self.summary)

    def _run_inline(self, stream):
        for unit in self.iter_units(stream):
            if self._stop.is_set():
                break
            self._dispatched()
            self._process(unit)

    def _run_pool(self, stream):
        slots = threading.BoundedSemaphore(self.high_water)

        def release(_future):
            slots.release()

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix='feed-import') as executor:
            for unit in self.iter_units(stream):
                if self._stop.is_set():
                    break
                slots.acquire()
                if self._stop.is_set():
                    slots.release()
                    break
                self._dispatched()
                future = executor.submit(self._process_in_worker, unit)
                future.add_done_callback(release)
            # leaving the block waits for queued units to drain

    def iter_units(self, stream):
        """Yield work units. Grouped feeds are buffered to the end of the stream first."""
        rows = self.read_rows(stream)
        if not self.feed.grouped:
            for line, row in rows:
                yield WorkUnit(self.feed.unit_key(row) or f'line {line}', line, [row])
            return

        groups = {}
        for line, row in rows:
            key = self.feed.unit_key(row)
            if key is None:
                yield WorkUnit(f'line {line}', line, [row])
            elif key in groups:
                groups[key].rows.append(row)
            else:
                groups[key] = WorkUnit(key, line, [row])
        yield from groups.values()

    def read_rows(self, stream):
        reader = csv.DictReader(stream)
        try:
            header = reader.fieldnames
        except csv.Error as exc:
            raise FeedError(f"Unreadable feed header: {exc}") from exc
        if not header:
            raise FeedError("Feed has no header row")

        reader.fieldnames = [(name or '').strip() for name in header]
        missing = [column for column in self.feed.required_columns if column not in reader.fieldnames]
        if missing:
            raise FeedError(f"Feed is missing required column(s): {', '.join(missing)}")

        while True:
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as exc:
                raise FeedError(f"Malformed feed near line {reader.line_num}: {exc}") from exc

            cleaned = {
                key: value.strip() if isinstance(value, str) else value
                for key, value in row.items()
                if key
            }
            if not any(cleaned.values()):
                continue
            with self._lock:
                self.summary['rows'] += 1
            yield reader.line_num, cleaned

    def _dispatched(self):
        with self._lock:
            self.summary['units'] += 1

    def _process_in_worker(self, unit):
        close_old_connections()
        try:
            self._process(unit)
        finally:
            close_old_connections()

    def _process(self, unit):
        if self._fatal is not None:
            self._advance()
            return

        attempt = 0
        while True:
            try:
                record = self.feed.transform(unit.rows, pricing=self.pricing)
                result = self.reconciler.reconcile(record)
            except (OperationalError, InterfaceError) as exc:
                attempt += 1
                if attempt > self.unit_retries:
                    self._abort(unit, exc)
                    return
                logger.warning(
                    'database error on unit %s (attempt %d): %s', unit.key, attempt, exc,
                    extra={'unit': unit.key, 'line': unit.line},
                )
                time.sleep(self.backoff * attempt)
                continue
            except Exception as exc:
                self._fail(unit, exc)
                return
            self._succeed(result)
            return

    def _succeed(self, result):
        created = result.get('product_status') == CREATED
        with self._lock:
            self.summary['processed'] += 1
            self.summary['products_created' if created else 'products_updated'] += 1
        self._advance()

    def _fail(self, unit, exc):
        context = {'unit': unit.key, 'line': unit.line, 'error_type': type(exc).__name__}
        if isinstance(exc, (CatalogError, ValueError)):
            logger.error('unit %s failed: %s', unit.key, exc, extra=context)
        else:
            logger.exception('unit %s failed unexpectedly', unit.key, extra=context)
        self.error_log.write(unit, exc)
        with self._lock:
            self.summary['errors'] += 1
        self._advance()

    def _abort(self, unit, exc):
        self.error_log.write(unit, exc)
        with self._lock:
            self.summary['errors'] += 1
            if self._fatal is None:
                self._fatal = exc
        self._stop.set()
        self._advance()

    def _advance(self):
        if self.progress is not None:
            self.progress(1)

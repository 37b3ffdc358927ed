"""
One-shot copy of every object missing from a destination store.

Each key is checked against the destination and copied only when absent
(or present with a different size), so re-running a migration only moves
what is still missing. Per-object failures are recorded in the
MigrationReport and never stop the run. With delete_source, copied objects
are removed from the source after the walk has finished.
"""
import logging
import mimetypes
import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from django.utils import timezone

from .exceptions import ObjectNotFound, StorageError, TransferError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = 'application/octet-stream'
GENERIC_CONTENT_TYPES = (DEFAULT_CONTENT_TYPE, 'binary/octet-stream')

COPIED = 'copied'
SKIPPED = 'skipped'
FAILED = 'failed'
NOT_ATTEMPTED = 'not_attempted'


@dataclass
class MigrationReport:
    copied: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[TransferError] = field(default_factory=list)
    not_attempted: List[str] = field(default_factory=list)
    replaced: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    delete_failed: List[TransferError] = field(default_factory=list)
    cancelled: bool = False
    dry_run: bool = False
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def total(self):
        return len(self.copied) + len(self.skipped) + len(self.failed) + len(self.not_attempted)

    @property
    def ok(self):
        return not self.failed and not self.delete_failed

    @property
    def failed_keys(self):
        return sorted(error.key for error in self.failed)

    @property
    def migrated_keys(self):
        """Keys present at the destination after the run"""
        return set(self.copied) | set(self.skipped)

    def counts(self):
        return {
            COPIED: len(self.copied),
            SKIPPED: len(self.skipped),
            FAILED: len(self.failed),
            NOT_ATTEMPTED: len(self.not_attempted),
            'replaced': len(self.replaced),
            'deleted': len(self.deleted),
            'delete_failed': len(self.delete_failed),
        }

    def as_dict(self):
        """JSON-ready form; keys sorted so output does not depend on worker scheduling"""
        duration = None
        if self.started_at and self.finished_at:
            duration = round((self.finished_at - self.started_at).total_seconds(), 3)
        return {
            COPIED: sorted(self.copied),
            SKIPPED: sorted(self.skipped),
            FAILED: [error.as_dict() for error in sorted(self.failed, key=lambda e: e.key)],
            NOT_ATTEMPTED: sorted(self.not_attempted),
            'replaced': sorted(self.replaced),
            'deleted': sorted(self.deleted),
            'delete_failed': [error.as_dict() for error in sorted(self.delete_failed, key=lambda e: e.key)],
            'counts': self.counts(),
            'cancelled': self.cancelled,
            'dry_run': self.dry_run,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'duration_seconds': duration,
        }


@dataclass(frozen=True)
class TransferOutcome:
    key: str
    status: str
    replaced: bool = False
    error: Optional[TransferError] = None


def guess_content_type(key, content_type=None):
    """Source content type, else a guess from the key's extension"""
    if content_type and content_type not in GENERIC_CONTENT_TYPES:
        return content_type
    guessed, _ = mimetypes.guess_type(key)
    return guessed or content_type or DEFAULT_CONTENT_TYPE


class ObjectMigrator:
    """
    Copies objects from source to destination.

    Args:
        source, destination: ObjectStore instances
        workers: Concurrent transfers; 1 runs sequentially
        cancel_event: threading.Event; once set, no new transfer starts
        deadline: time.monotonic() value after which no new transfer starts
        verify_size: Re-copy objects whose destination size differs
        dry_run: Only check the destination; nothing is fetched or written
        delete_source: Remove copied objects from the source once listing and
            copying are done
    """

    def __init__(self, source, destination, *, workers=8, cancel_event=None, deadline=None,
                 verify_size=True, dry_run=False, delete_source=False):
        if workers < 1:
            raise ValueError('workers must be at least 1')
        self.source = source
        self.destination = destination
        self.workers = workers
        self.cancel_event = cancel_event or threading.Event()
        self.deadline = deadline
        self.verify_size = verify_size
        self.dry_run = dry_run
        self.delete_source = delete_source
        self._lock = threading.Lock()

    def should_stop(self):
        if self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def _size_differs(self, source_info, existing):
        if not self.verify_size:
            return False
        return source_info.size is not None and existing.size is not None and source_info.size != existing.size

    def transfer(self, info):
        """Move a single object; returns a TransferOutcome, never raises"""
        key = info.key
        if self.should_stop():
            return TransferOutcome(key, NOT_ATTEMPTED)

        try:
            replaced = False
            try:
                existing = self.destination.head(key)
            except ObjectNotFound:
                existing = None

            if existing is not None:
                if not self._size_differs(info, existing):
                    logger.debug(f"Skipped {key}: already at destination")
                    return TransferOutcome(key, SKIPPED)
                logger.info(f"Re-copying {key}: destination has {existing.size} bytes, source {info.size}")
                replaced = True

            if self.dry_run:
                return TransferOutcome(key, COPIED, replaced=replaced)

            obj = self.source.get(key)
            content_type = guess_content_type(key, obj.content_type or info.content_type)
            self.destination.put(key, obj.body, content_type, metadata=obj.metadata or None)
            logger.debug(f"Copied {key} ({obj.size} bytes, {content_type})")
            return TransferOutcome(key, COPIED, replaced=replaced)
        except Exception as e:
            # One object's failure is recorded; the run goes on
            logger.warning(f"Failed to migrate {key}: {e}")
            return TransferOutcome(key, FAILED, error=TransferError.from_exception(key, e))

    def _remove_source(self, report, key):
        """Delete one copied object from the source; a failure leaves both copies in place"""
        try:
            self.source.delete(key)
        except ObjectNotFound:
            logger.info(f"{key} already gone from source")
        except Exception as e:
            logger.warning(f"Copied {key} but could not delete it from source: {e}")
            with self._lock:
                report.delete_failed.append(TransferError.from_exception(key, e))
            return
        logger.debug(f"Deleted {key} from source")
        with self._lock:
            report.deleted.append(key)

    def _delete_copied(self, report):
        # Runs after listing so offset-paged sources do not shift under the walk
        keys = sorted(report.copied)
        logger.info(f"Deleting {len(keys)} copied object(s) from {self.source!r}")
        if self.workers == 1:
            for key in keys:
                self._remove_source(report, key)
            return
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix='cleanup') as executor:
            for key in keys:
                executor.submit(self._remove_source, report, key)

    def _record(self, report, outcome):
        with self._lock:
            if outcome.status == FAILED:
                report.failed.append(outcome.error)
            else:
                getattr(report, outcome.status).append(outcome.key)
            if outcome.replaced:
                report.replaced.append(outcome.key)

    def _transfer_and_record(self, report, info):
        self._record(report, self.transfer(info))

    def _run_sequential(self, report, prefix):
        for info in self.source.list(prefix):
            self._transfer_and_record(report, info)

    def _run_pool(self, report, prefix):
        # At most 2 x workers transfers are queued so the listing is consumed lazily
        max_in_flight = self.workers * 2
        in_flight = set()
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix='migrate') as executor:
            for info in self.source.list(prefix):
                if len(in_flight) >= max_in_flight:
                    _, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
                in_flight.add(executor.submit(self._transfer_and_record, report, info))

    def migrate(self, prefix=''):
        """
        Copy every object under prefix that the destination lacks.

        Raises:
            StorageError: listing the source failed; the partial report is
                attached as ``exc.report``
        """
        report = MigrationReport(dry_run=self.dry_run, started_at=timezone.now())
        mode = 'dry run' if self.dry_run else 'copy'
        logger.info(f"Migrating '{prefix}' from {self.source!r} to {self.destination!r} "
                    f"({mode}, {self.workers} worker(s))")
        try:
            if self.workers == 1:
                self._run_sequential(report, prefix)
            else:
                self._run_pool(report, prefix)
            if self.delete_source and not self.dry_run and report.copied:
                self._delete_copied(report)
        except StorageError as e:
            logger.error(f"Listing {self.source!r} failed after {report.total} object(s): {e}")
            e.report = report
            raise
        finally:
            report.finished_at = timezone.now()
            report.cancelled = bool(report.not_attempted) or self.cancel_event.is_set()

        counts = report.counts()
        logger.info(f"Migration finished: {counts[COPIED]} copied, {counts[SKIPPED]} skipped, "
                    f"{counts[FAILED]} failed, {counts[NOT_ATTEMPTED]} not attempted"
                    + (f", {counts['deleted']} deleted from source" if self.delete_source else ""))
        return report

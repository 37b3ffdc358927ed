"""
Management command to copy objects from one object store to another

Stores are configured through MIGRATION_SOURCE_* and MIGRATION_DEST_*
environment variables (defaults: Supabase Storage -> Cloudflare R2).
"""
import json
import signal
import threading
import time

from django.core.management.base import BaseCommand, CommandError

from backend.storage.clients import DEFAULT_PAGE_SIZE, build_store
from backend.storage.config import MigrationConfig
from backend.storage.exceptions import ConfigurationError, StorageError
from backend.storage.migrator import ObjectMigrator
from backend.storage.rewrite import rewrite_image_urls

RULE = "=" * 80


class Command(BaseCommand):
    help = "Copies objects missing from the destination store out of the source store"

    def add_arguments(self, parser):
        parser.add_argument('--prefix', default='', help='Only migrate keys starting with this prefix')
        parser.add_argument('--workers', type=int, default=8, help='Concurrent transfers (1 = sequential)')
        parser.add_argument('--page-size', type=int, default=DEFAULT_PAGE_SIZE, help='Keys fetched per listing page')
        parser.add_argument('--deadline', type=float, default=None,
                            help='Stop starting new transfers after this many seconds')
        parser.add_argument('--dry-run', action='store_true', help='Only report what would be copied')
        parser.add_argument('--no-verify-size', action='store_true',
                            help='Skip destination objects even when their size differs')
        parser.add_argument('--delete-source', action='store_true',
                            help='Delete each copied object from the source store (ignored with --dry-run)')
        parser.add_argument('--rewrite-urls', action='store_true',
                            help='Point stored image URLs at the destination afterwards')
        parser.add_argument('--json', action='store_true', help='Print the report as JSON')

    def handle(self, *args, **options):
        try:
            config = MigrationConfig.from_env()
        except ConfigurationError as e:
            raise CommandError(str(e))

        if options['workers'] < 1:
            raise CommandError('--workers must be at least 1')
        if options['page_size'] < 1:
            raise CommandError('--page-size must be at least 1')

        rewrite = options['rewrite_urls'] and not options['dry_run']
        if rewrite and not (config.source.public_base_url and config.destination.public_base_url):
            raise CommandError('--rewrite-urls needs MIGRATION_SOURCE_PUBLIC_URL and MIGRATION_DEST_PUBLIC_URL')

        source = build_store(config.source, page_size=options['page_size'])
        destination = build_store(config.destination, page_size=options['page_size'])

        cancel_event = threading.Event()
        deadline = None
        if options['deadline'] is not None:
            deadline = time.monotonic() + options['deadline']

        migrator = ObjectMigrator(
            source,
            destination,
            workers=options['workers'],
            cancel_event=cancel_event,
            deadline=deadline,
            verify_size=not options['no_verify_size'],
            dry_run=options['dry_run'],
            delete_source=options['delete_source'],
        )

        if not options['json']:
            self.stdout.write(self.style.SUCCESS(RULE))
            self.stdout.write(self.style.SUCCESS(
                f"MIGRATING {config.source.backend}:{config.source.bucket} -> "
                f"{config.destination.backend}:{config.destination.bucket}"
                + (" (DRY RUN)" if options['dry_run'] else "")
            ))
            if options['delete_source'] and not options['dry_run']:
                self.stdout.write(self.style.WARNING("Copied objects will be deleted from the source"))
            self.stdout.write(self.style.SUCCESS(RULE))

        previous_handler = signal.signal(signal.SIGINT, self._interrupt_handler(cancel_event))
        try:
            report = migrator.migrate(options['prefix'])
        except StorageError as e:
            if e.report is not None:
                self.write_report(e.report, options['json'])
            raise CommandError(f"Listing source objects failed: {e}")
        finally:
            signal.signal(signal.SIGINT, previous_handler)

        self.write_report(report, options['json'])

        if rewrite:
            counts = rewrite_image_urls(report, config.source.public_base_url, config.destination.public_base_url)
            if not options['json']:
                self.stdout.write(self.style.SUCCESS("\nImage URLs rewritten:"))
                for model_name, count in counts.items():
                    self.stdout.write(f"  {model_name}: {count}")

        if report.cancelled:
            raise CommandError(f"Migration cancelled: {len(report.not_attempted)} object(s) not attempted")
        if report.failed:
            raise CommandError(f"{len(report.failed)} object(s) failed to migrate")
        if report.delete_failed:
            raise CommandError(f"{len(report.delete_failed)} object(s) could not be deleted from the source")

    def _interrupt_handler(self, cancel_event):
        def handler(signum, frame):
            if cancel_event.is_set():
                # Second Ctrl-C aborts immediately
                raise KeyboardInterrupt
            self.stderr.write("Interrupted: finishing in-flight transfers (Ctrl-C again to abort)")
            cancel_event.set()
        return handler

    def write_report(self, report, as_json=False):
        if as_json:
            self.stdout.write(json.dumps(report.as_dict(), indent=2))
            return

        counts = report.counts()
        self.stdout.write(self.style.SUCCESS("\n" + RULE))
        self.stdout.write(self.style.SUCCESS("SUMMARY"))
        self.stdout.write(self.style.SUCCESS(RULE))
        self.stdout.write(f"Copied: {counts['copied']}")
        if report.replaced:
            self.stdout.write(self.style.WARNING(f"  of which replaced (size mismatch): {counts['replaced']}"))
        self.stdout.write(f"Skipped (already present): {counts['skipped']}")
        if report.not_attempted:
            self.stdout.write(self.style.WARNING(f"Not attempted: {counts['not_attempted']}"))
        if report.failed:
            self.stdout.write(self.style.ERROR(f"Failed: {counts['failed']}"))
            for error in sorted(report.failed, key=lambda e: e.key):
                self.stdout.write(self.style.ERROR(f"  ✗ {error.key}: {error.message}"))
        else:
            self.stdout.write("Failed: 0")
        if report.deleted:
            self.stdout.write(f"Deleted from source: {counts['deleted']}")
        if report.delete_failed:
            self.stdout.write(self.style.ERROR(f"Could not delete from source: {counts['delete_failed']}"))
            for error in sorted(report.delete_failed, key=lambda e: e.key):
                self.stdout.write(self.style.ERROR(f"  ✗ {error.key}: {error.message}"))
        self.stdout.write(self.style.SUCCESS(RULE))

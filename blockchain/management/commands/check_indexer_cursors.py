from django.core.management.base import BaseCommand
from blockchain.models import IndexerCursor


class Command(BaseCommand):
    help = (
        "Inspect IndexerCursor rows against the known indexer names. "
        "Flags any unknown cursors and can optionally delete them."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--delete-unknown",
            action="store_true",
            help="Delete any cursor rows whose name is not a known indexer",
        )

    def handle(self, *args, **options):
        known = set(IndexerCursor.KNOWN_NAMES)

        rows = list(
            IndexerCursor.objects.all().values(
                "name", "last_indexed_block", "updated_at"
            ).order_by("name")
        )

        self.stdout.write(self.style.NOTICE("Known indexers:"))
        for name in sorted(known):
            self.stdout.write(f"  - {name}")

        self.stdout.write("")
        self.stdout.write(self.style.NOTICE(f"Found {len(rows)} cursor row(s):"))
        for r in rows:
            mark = "" if r["name"] in known else "  (UNKNOWN)"
            self.stdout.write(
                f"  - name={r['name']}, last_indexed_block={r['last_indexed_block']}, "
                f"updated_at={r['updated_at']}{mark}"
            )

        unknown = [r["name"] for r in rows if r["name"] not in known]
        self.stdout.write("")
        if unknown:
            self.stdout.write(
                self.style.WARNING(f"Unknown cursors present: {len(unknown)} ({', '.join(unknown)}).")
            )
        else:
            self.stdout.write(self.style.SUCCESS("No unknown cursors."))

        if options.get("delete_unknown") and unknown:
            deleted, _ = IndexerCursor.objects.filter(name__in=unknown).delete()
            self.stdout.write("")
            self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} row(s): {unknown}"))

from django.core.management.base import BaseCommand, CommandError

from board_core.selectors import compact_column_positions
from board_core.workflows import states_for_kind, workflow_kinds


class Command(BaseCommand):
    help = "Rewrite board column positions to 0..n-1, keeping the current display order"

    def add_arguments(self, parser):
        parser.add_argument("kind", choices=workflow_kinds())
        parser.add_argument(
            "--state",
            action="append",
            dest="states",
            help="Column to compact (repeatable). Defaults to every column of the kind.",
        )

    def handle(self, *args, **options):
        kind = options["kind"]
        states = options["states"] or states_for_kind(kind)

        total = 0
        for state in states:
            try:
                changed = compact_column_positions(kind, state)
            except ValueError as exc:
                raise CommandError(str(exc))
            total += changed
            self.stdout.write(f"{kind} {state.upper()}: {changed} rewritten")

        self.stdout.write(self.style.SUCCESS(f"Done, {total} rows rewritten"))

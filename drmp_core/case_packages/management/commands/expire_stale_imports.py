# drmp_core/case_packages/management/commands/expire_stale_imports.py
from __future__ import annotations

from django.core.management.base import BaseCommand

from drmp_core.case_packages.services import CasePackageService


class Command(BaseCommand):
    help = "Mark case package imports stuck in PROCESSING past the timeout as FAILED (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--timeout-seconds",
            type=int,
            default=None,
            help="Override DRMP_IMPORT_TIMEOUT_SECONDS.",
        )

    def handle(self, *args, **opts):
        expired = CasePackageService.expire_stale_imports(timeout_seconds=opts["timeout_seconds"])
        self.stdout.write(self.style.SUCCESS(f"Stale imports expired: {expired}"))

# drmp_core/common/management/commands/seed_permissions.py

from django.core.management.base import BaseCommand

from drmp_core.iam.services.seed import seed_permissions


class Command(BaseCommand):
    help = "Ensure capability permissions and default roles exist (idempotent)."

    def handle(self, *args, **options):
        counts = seed_permissions()
        self.stdout.write(
            self.style.SUCCESS(
                f"Permissions ensured. Newly created: {counts['permissions_created']} permissions, "
                f"{counts['roles_created']} roles"
            )
        )

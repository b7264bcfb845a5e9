# visits/management/commands/ensure_workflow_users.py
from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password

from visits.models import User

WORKFLOW_USERS = [
    ("registrar1", "registrar"),
    ("nurse1", "nurse"),
    ("doctor1", "doctor"),
    ("pharmacist1", "pharmacist"),
    ("admin1", "admin"),
]


class Command(BaseCommand):
    help = "Ensure one user per workflow role exists with the given password (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default="password123", help="Password set on every seeded account.")

    def handle(self, *args, **opts):
        password = make_password(opts["password"])
        for username, role in WORKFLOW_USERS:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={"role": role, "password": password, "is_active": True},
            )
            if not created:
                # Reset password, activation and role on existing accounts
                u.password = password
                u.role = role
                u.is_active = True
                u.save(update_fields=["password", "role", "is_active"])
            self.stdout.write(self.style.SUCCESS(f"ok: {username} ({role})"))
        self.stdout.write(self.style.SUCCESS("All workflow users ensured."))

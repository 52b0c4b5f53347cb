"""
Management command to convert legacy memberships into role assignments.

Reads a JSON array of ``{"user_email", "level", "scope_id", "role"}``
rows. ``level`` is TENANT (or ORGANIZATION), WORKSPACE or TEAM. A legacy
``SUPERUSER`` role sets ``is_superuser`` instead of creating an
assignment. Re-running the command is safe.
"""
import json

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from apps.rbac.models import RoleAssignment, User
from apps.rbac.roles import ScopeType, map_legacy_role
from apps.rbac.services import RoleResolver

LEVEL_ALIASES = {
    'TENANT': ScopeType.TENANT,
    'ORGANIZATION': ScopeType.TENANT,
    'ORG': ScopeType.TENANT,
    'WORKSPACE': ScopeType.WORKSPACE,
    'TEAM': ScopeType.TEAM,
}


class Command(BaseCommand):
    help = 'Migrate legacy membership roles to scoped role assignments'

    def add_arguments(self, parser):
        parser.add_argument(
            'source',
            type=str,
            help='Path to a JSON file with legacy membership rows',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would change without writing',
        )

    def handle(self, *args, **options):
        rows = self._load(options['source'])
        dry_run = options['dry_run']

        migrated = 0
        skipped = 0
        with transaction.atomic():
            for index, row in enumerate(rows):
                reason = self._migrate_row(row, dry_run)
                if reason is None:
                    migrated += 1
                else:
                    skipped += 1
                    self.stdout.write(self.style.WARNING(f"  Row {index}: skipped ({reason})"))

            if dry_run:
                transaction.set_rollback(True)

        prefix = '[dry run] ' if dry_run else ''
        self.stdout.write(self.style.SUCCESS(f"{prefix}Migrated: {migrated}, skipped: {skipped}"))

    def _load(self, path):
        try:
            with open(path, encoding='utf-8') as handle:
                rows = json.load(handle)
        except OSError as exc:
            raise CommandError(f"Cannot read {path}: {exc}")
        except json.JSONDecodeError as exc:
            raise CommandError(f"Invalid JSON in {path}: {exc}")
        if not isinstance(rows, list):
            raise CommandError('Expected a JSON array of membership rows.')
        return rows

    def _migrate_row(self, row, dry_run):
        """Apply one row; return None on success or the reason it was skipped."""
        if not isinstance(row, dict):
            return 'not an object'

        email = (row.get('user_email') or '').strip().lower()
        user = User.objects.filter(email__iexact=email).first() if email else None
        if user is None:
            return f"unknown user {email or '<missing>'}"

        legacy_role = str(row.get('role') or '').upper()
        if legacy_role == 'SUPERUSER':
            if user.is_superuser:
                return 'already superuser'
            user.is_superuser = True
            user.save(update_fields=['is_superuser', 'updated_at'])
            return None

        scope_type = LEVEL_ALIASES.get(str(row.get('level') or '').upper())
        if scope_type is None:
            return f"unknown level {row.get('level')!r}"

        role = map_legacy_role(scope_type, legacy_role)
        if role is None:
            return f"no mapping for {legacy_role} at {scope_type}"

        scope_id = row.get('scope_id')
        if not scope_id or RoleResolver.resolve_scope(scope_type, scope_id) is None:
            return f"unknown {scope_type.lower()} {scope_id}"

        if RoleAssignment.objects.filter(
            user=user, role=role, scope_type=scope_type, scope_id=scope_id
        ).exists():
            return 'already migrated'

        if not dry_run:
            RoleAssignment.objects.create(
                user=user, role=role, scope_type=scope_type, scope_id=scope_id
            )
        return None

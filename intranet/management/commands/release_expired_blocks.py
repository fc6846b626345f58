from django.core.management.base import BaseCommand, CommandError

from intranet.actors import Actor
from intranet.schema import USERS
from intranet.services.moderation import release_expired_blocks
from intranet.store import get_store


class Command(BaseCommand):
    help = "Unblock users whose temporary block (blockedUntil) has passed."

    def add_arguments(self, parser):
        parser.add_argument(
            '--admin-id',
            help="Record the unblock as performed by this admin (defaults to the system).",
        )

    def handle(self, *args, **options):
        admin_id = options.get('admin_id')
        if admin_id:
            admin_user = get_store().get(USERS, admin_id)
            if admin_user is None or not admin_user.get('isAdmin'):
                raise CommandError(f"{admin_id} is not an admin")
            actor = Actor.from_user(admin_user)
        else:
            actor = Actor.system()

        released = release_expired_blocks(actor)
        self.stdout.write(self.style.SUCCESS(f"Released {len(released)} expired block(s)"))
        for user_id in released:
            self.stdout.write(f"  {user_id}")

from django.core.management.base import BaseCommand

from apps.core.adapters.orm_state_store import DjangoStateStore
from apps.core.application.factory import build_for_key
from apps.core.conf import game_settings, is_backup_key


class Command(BaseCommand):
    help = 'Jeden takt zegara gry: sesje skupienia, wygasłe efekty, zapis'

    def add_arguments(self, parser):
        parser.add_argument('--key', help='Tylko jeden snapshot (pełny klucz)')

    def handle(self, *args, **options):
        if options.get('key'):
            keys = [options['key']]
        else:
            prefix = game_settings()['STATE_KEY_PREFIX']
            keys = [k for k in DjangoStateStore().keys(prefix) if not is_backup_key(k)]

        saved = 0
        for key in keys:
            service = build_for_key(key)
            service.tick()
            if service.flush():
                saved += 1

        self.stdout.write(self.style.SUCCESS(f'Takt dla {len(keys)} graczy, zapisano {saved}.'))

from django.core.management.base import BaseCommand

from apps.core.adapters.orm_state_store import DjangoStateStore
from apps.core.application.factory import build_for_key
from apps.core.conf import game_settings, is_backup_key


class Command(BaseCommand):
    help = 'Przejście dnia i generowanie zadań cyklicznych dla wszystkich graczy'

    def handle(self, *args, **options):
        prefix = game_settings()['STATE_KEY_PREFIX']
        keys = [k for k in DjangoStateStore().keys(prefix) if not is_backup_key(k)]

        total = 0
        for key in keys:
            service = build_for_key(key)
            result = service.materialize_today()
            service.flush()

            generated = result.data.get('generated', [])
            total += len(generated)
            for task_id in generated:
                task = service.state.book.find(task_id)
                self.stdout.write(f"- [{key}] {task.title} ({task.scheduled_for})")

        self.stdout.write(self.style.SUCCESS(f'Wygenerowano {total} nowych zadań cyklicznych.'))

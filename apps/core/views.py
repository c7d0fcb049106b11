
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from apps.core.application.factory import build_game_service
from apps.core.domain.results import ActionResult



def _respond(service, result: ActionResult) -> JsonResponse:
    # Po każdej akcji: tick (skupienie, przegląd efektów) i zapis od razu
    service.tick()
    service.flush()

    payload = {
        'ok': result.ok,
        'reason': result.reason,
        'message': result.message,
        'data': result.data,
        'status': service.status(),
    }
    return JsonResponse(payload, status=200 if result.ok else 400)


def _int_param(request, name):
    try:
        return int(request.POST.get(name, ''))
    except ValueError:
        return None


@login_required
@require_GET
def status_view(request):
    service = build_game_service(request.user.pk)
    service.tick()
    service.flush()
    return JsonResponse(service.status())


@login_required
@require_POST
def toggle_completion_view(request, level, pk):
    service = build_game_service(request.user.pk)
    return _respond(service, service.toggle_completion(level, pk))


@login_required
@require_POST
def toggle_checklist_view(request, level, pk, item_id):
    service = build_game_service(request.user.pk)
    return _respond(service, service.toggle_checklist_item(level, pk, item_id))


@login_required
@require_POST
def link_add_view(request, level, pk):
    service = build_game_service(request.user.pk)
    parent_id = _int_param(request, 'parent_id')
    if parent_id is None:
        return _respond(service, ActionResult.refused('invalid_parent', "Podaj cel nadrzędny."))
    return _respond(service, service.add_link(level, pk, parent_id))


@login_required
@require_POST
def link_remove_view(request, level, pk):
    service = build_game_service(request.user.pk)
    parent_id = _int_param(request, 'parent_id')
    if parent_id is None:
        return _respond(service, ActionResult.refused('invalid_parent', "Podaj cel nadrzędny."))
    return _respond(service, service.remove_link(level, pk, parent_id))


@login_required
@require_POST
def cast_effect_view(request, effect_type):
    service = build_game_service(request.user.pk)
    return _respond(service, service.cast_effect(effect_type))


@login_required
@require_POST
def purchase_chest_view(request, tier):
    service = build_game_service(request.user.pk)
    return _respond(service, service.purchase_chest(tier))


@login_required
@require_POST
def materialize_today_view(request):
    service = build_game_service(request.user.pk)
    return _respond(service, service.materialize_today())

from django.urls import path
from . import views

app_name = 'game'

urlpatterns = [
    path('status/', views.status_view, name='status'),
    path('today/', views.materialize_today_view, name='materialize_today'),
    path('goals/<str:level>/<int:pk>/toggle/', views.toggle_completion_view, name='toggle_completion'),
    path('goals/<str:level>/<int:pk>/checklist/<int:item_id>/toggle/', views.toggle_checklist_view,
         name='toggle_checklist_item'),
    path('goals/<str:level>/<int:pk>/links/add/', views.link_add_view, name='link_add'),
    path('goals/<str:level>/<int:pk>/links/remove/', views.link_remove_view, name='link_remove'),
    path('spells/<str:effect_type>/cast/', views.cast_effect_view, name='cast_effect'),
    path('chests/<str:tier>/', views.purchase_chest_view, name='purchase_chest'),
]

# life_quest/urls.py
from django.contrib import admin
from django.urls import path, include


urlpatterns = [
    path('admin/', admin.site.urls),
    # Silnik gry - endpointy JSON
    path('game/', include('apps.core.urls')),
]

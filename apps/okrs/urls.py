"""
URL configuration for objective and key-result endpoints.
"""
from django.urls import path

from apps.okrs import views

app_name = 'okrs'

urlpatterns = [
    path('objectives', views.ObjectiveListView.as_view(), name='objective-list'),
    path('objectives/<uuid:objective_id>', views.ObjectiveDetailView.as_view(), name='objective-detail'),
    path('objectives/<uuid:objective_id>/publish', views.ObjectivePublishView.as_view(), name='objective-publish'),
    path('objectives/<uuid:objective_id>/permissions', views.ObjectivePermissionsView.as_view(),
         name='objective-permissions'),
    path('key-results/<uuid:key_result_id>', views.KeyResultDetailView.as_view(), name='key-result-detail'),
    path('key-results/<uuid:key_result_id>/permissions', views.KeyResultPermissionsView.as_view(),
         name='key-result-permissions'),
]

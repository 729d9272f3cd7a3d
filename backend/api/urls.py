from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import ElectionViewSet, CandidateViewSet, ReconcileAPIView

router = DefaultRouter()
router.register(r'elections', ElectionViewSet, basename='election')
router.register(r'candidates', CandidateViewSet, basename='candidate')

urlpatterns = [
    path('', include(router.urls)),
    path('reconcile/', ReconcileAPIView.as_view(), name='reconcile'),
]

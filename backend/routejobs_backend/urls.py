from django.urls import path, include
from rest_framework.routers import DefaultRouter
from jobboard.views import JobViewSet, DriverViewSet

router = DefaultRouter()
router.register(r'jobs', JobViewSet, basename='job')
router.register(r'drivers', DriverViewSet, basename='driver')

urlpatterns = [
    path('api/v1/', include(router.urls)),
]

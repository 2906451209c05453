from django.urls import path, include
from rest_framework.routers import DefaultRouter
from riders_api.views import RiderViewSet, DeliveryOrderViewSet

router = DefaultRouter()
router.register(r'riders', RiderViewSet, basename='rider')
router.register(r'orders', DeliveryOrderViewSet, basename='order')

urlpatterns = [
    path('api/v1/', include(router.urls)),
]

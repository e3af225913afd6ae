from django.contrib import admin
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from backend.users.views import RegisterView, UserDetailView
from backend.marketplace.views import EmergencyOrderViewSet, PharmacyViewSet, ProductViewSet

router = DefaultRouter()
router.register(r'pharmacies', PharmacyViewSet)
router.register(r'products', ProductViewSet, basename='product')
router.register(r'emergency-orders', EmergencyOrderViewSet, basename='emergency-order')

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include(router.urls)),
    path('api/v1/auth/register/', RegisterView.as_view(), name='register'),
    path('api/v1/auth/me/', UserDetailView.as_view(), name='user-detail'),
]

from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from backend.users.models import User
from dispatch.exceptions import ForbiddenError
from orders.models import Pharmacist

from .models import Pharmacy, Product
from .repositories import DjangoGeoDirectory
from .serializers import (
    EmergencyOrderCreateSerializer,
    EmergencyOrderSerializer,
    NearbyPharmacySerializer,
    NearbyQuerySerializer,
    PharmacySerializer,
    ProductSerializer,
    RatingSerializer,
    RespondSerializer,
)
from .services import caller_for, get_dispatcher, rate_pharmacy


class IsPharmacyOwnerOrReadOnly(permissions.BasePermission):
    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS:
            return True
        return obj.owner == request.user


class IsPharmacistToCreate(permissions.BasePermission):
    message = "Only pharmacists can register a pharmacy"

    def has_permission(self, request, view):
        if view.action != "create":
            return True
        return request.user.is_authenticated and request.user.role == User.Roles.PHARMACIST


class PharmacyViewSet(viewsets.ModelViewSet):
    """
    Standard ViewSet for Pharmacies.
    - Public: List/Retrieve/Nearby
    - Pharmacist: Create
    - Owner: Update/Delete
    - Any signed-in user: Rate
    """
    queryset = Pharmacy.objects.prefetch_related("stock__product")
    serializer_class = PharmacySerializer
    permission_classes = [
        permissions.IsAuthenticatedOrReadOnly,
        IsPharmacistToCreate,
        IsPharmacyOwnerOrReadOnly,
    ]

    def perform_create(self, serializer):
        serializer.save(owner=self.request.user)

    @action(detail=False, methods=['get'])
    def nearby(self, request):
        query = NearbyQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        radius = query.validated_data.get("radius") or get_dispatcher().policy.search_radius_m

        point = (query.validated_data["lng"], query.validated_data["lat"])
        nearby = DjangoGeoDirectory().find_active_near(point, radius)
        return Response(NearbyPharmacySerializer(nearby, many=True).data)

    @action(detail=True, methods=['post'], permission_classes=[permissions.IsAuthenticated])
    def rate(self, request, pk=None):
        pharmacy = self.get_object()
        payload = RatingSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        average = rate_pharmacy(pharmacy, request.user, payload.validated_data["rating"])
        return Response({"averageRating": average})


class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ProductSerializer
    permission_classes = [permissions.IsAuthenticatedOrReadOnly]

    def get_queryset(self):
        queryset = Product.objects.order_by("name")
        search = self.request.query_params.get("search")
        if search:
            queryset = queryset.filter(name__icontains=search)
        return queryset


class EmergencyOrderViewSet(viewsets.ViewSet):
    """
    Emergency orders run through the dispatcher, not through ModelViewSet,
    so every state change goes through the conditional writes in the store.
    Dispatch errors are turned into responses by marketplace.exceptions.
    """
    permission_classes = [permissions.IsAuthenticated]

    def _render(self, orders, many=False, http_status=status.HTTP_200_OK):
        return Response(EmergencyOrderSerializer(orders, many=many).data, status=http_status)

    def create(self, request):
        payload = EmergencyOrderCreateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = dict(payload.validated_data)

        location = data.pop("location", None)
        order = get_dispatcher().create_smart_emergency_order(
            str(request.user.pk),
            location=location["coordinates"] if location else None,
            **data,
        )
        return self._render(order, http_status=status.HTTP_201_CREATED)

    def list(self, request):
        """
        The signed-in user's own orders, newest first.
        """
        return self._render(get_dispatcher().list_orders_for_user(str(request.user.pk)), many=True)

    def retrieve(self, request, pk=None):
        order = get_dispatcher().get_order(pk, caller_for(request.user))
        return self._render(order)

    @action(detail=False, methods=['get'])
    def pharmacy(self, request):
        """
        Pending orders targeting the caller's pharmacy.
        """
        caller = caller_for(request.user)
        if not isinstance(caller, Pharmacist):
            raise ForbiddenError("User is not associated with a pharmacy")
        return self._render(get_dispatcher().list_orders_for_pharmacy(caller.pharmacy_id), many=True)

    @action(detail=True, methods=['post'])
    def respond(self, request, pk=None):
        payload = RespondSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        order = get_dispatcher().record_pharmacy_response(
            pk,
            caller_for(request.user),
            payload.validated_data["decision"],
            payload.validated_data.get("rejection_reason"),
        )
        return self._render(order)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        order = get_dispatcher().cancel_order(pk, str(request.user.pk))
        return self._render(order)

    @action(detail=True, methods=['post'])
    def fulfill(self, request, pk=None):
        order = get_dispatcher().fulfill_order(pk, caller_for(request.user))
        return self._render(order)

from rest_framework import serializers

from .models import Pharmacy, Product, StockItem


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = '__all__'


class StockItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = StockItem
        fields = ["id", "product", "product_name", "quantity", "price"]


class PharmacySerializer(serializers.ModelSerializer):
    stock = StockItemSerializer(many=True, read_only=True)

    class Meta:
        model = Pharmacy
        fields = '__all__'
        read_only_fields = ['owner', 'average_rating']

    def validate(self, attrs):
        lng = attrs.get('lng', getattr(self.instance, 'lng', None))
        lat = attrs.get('lat', getattr(self.instance, 'lat', None))
        if lng is not None and not -180 <= lng <= 180:
            raise serializers.ValidationError({'lng': 'Longitude must be between -180 and 180.'})
        if lat is not None and not -90 <= lat <= 90:
            raise serializers.ValidationError({'lat': 'Latitude must be between -90 and 90.'})
        return attrs


class NearbyPharmacySerializer(serializers.Serializer):
    """
    Serializes pharmacies.models.NearbyPharmacy for the nearby search.
    """
    id = serializers.CharField(source="pharmacy.id")
    name = serializers.CharField(source="pharmacy.name")
    averageRating = serializers.FloatField(source="pharmacy.average_rating")
    distanceMeters = serializers.FloatField(source="distance_m")
    location = serializers.SerializerMethodField()

    def get_location(self, obj):
        return {"type": "Point", "coordinates": list(obj.pharmacy.location)}


class NearbyQuerySerializer(serializers.Serializer):
    lng = serializers.FloatField(min_value=-180, max_value=180)
    lat = serializers.FloatField(min_value=-90, max_value=90)
    radius = serializers.FloatField(min_value=1, required=False)


class RatingSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=0, max_value=5)


# -------------------------
# Emergency orders
# -------------------------

class LocationSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=["Point"], required=False)
    coordinates = serializers.ListField(child=serializers.FloatField(), min_length=2, max_length=2)


class EmergencyOrderCreateSerializer(serializers.Serializer):
    """
    Shape check only. Business validation (blank names, ranges, timeout) happens in
    the dispatcher so the HTTP and in-process paths reject the same inputs.
    """
    requestedMedicineName = serializers.CharField(source="requested_medicine_name", allow_blank=True)
    deliveryAddress = serializers.CharField(source="delivery_address", allow_blank=True)
    additionalNotes = serializers.CharField(source="additional_notes", required=False, allow_blank=True)
    priority = serializers.CharField(required=False, allow_blank=True)
    responseTimeoutMinutes = serializers.IntegerField(source="response_timeout_minutes", required=False)
    location = LocationSerializer(required=False)


class RespondSerializer(serializers.Serializer):
    decision = serializers.CharField()
    rejectionReason = serializers.CharField(source="rejection_reason", required=False, allow_blank=True)


class PharmacyResponseSerializer(serializers.Serializer):
    pharmacyId = serializers.CharField(source="pharmacy_id")
    decision = serializers.CharField(source="decision.value")
    rejectionReason = serializers.CharField(source="rejection_reason", allow_null=True)
    respondedAt = serializers.DateTimeField(source="responded_at")


class EmergencyOrderSerializer(serializers.Serializer):
    """
    Read-only view of orders.models.EmergencyOrder.
    """
    id = serializers.CharField()
    requesterId = serializers.CharField(source="requester_id")
    requestedMedicineName = serializers.CharField(source="requested_medicine_name")
    additionalNotes = serializers.CharField(source="additional_notes")
    deliveryAddress = serializers.CharField(source="delivery_address")
    location = serializers.SerializerMethodField()
    status = serializers.CharField(source="status.value")
    priority = serializers.CharField(source="priority.value")
    targetedPharmacyIds = serializers.ListField(source="targeted_pharmacy_ids", child=serializers.CharField())
    responses = PharmacyResponseSerializer(many=True)
    acceptedPharmacyId = serializers.CharField(source="accepted_pharmacy_id", allow_null=True)
    responseDeadline = serializers.DateTimeField(source="response_deadline")
    createdAt = serializers.DateTimeField(source="created_at")
    updatedAt = serializers.DateTimeField(source="updated_at")

    def get_location(self, obj):
        return {"type": "Point", "coordinates": list(obj.location)}

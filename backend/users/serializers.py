from rest_framework import serializers
from .models import User


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'phone_number', 'role', 'address', 'lng', 'lat']
        read_only_fields = ['id', 'role']

    def validate(self, attrs):
        lng = attrs.get('lng', getattr(self.instance, 'lng', None))
        lat = attrs.get('lat', getattr(self.instance, 'lat', None))
        if (lng is None) != (lat is None):
            raise serializers.ValidationError("lng and lat must be provided together")
        if lng is not None and not (-180 <= lng <= 180 and -90 <= lat <= 90):
            raise serializers.ValidationError("Invalid coordinates.")
        return attrs


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['username', 'password', 'phone_number', 'role', 'address', 'lng', 'lat']

    def validate_role(self, value):
        # Admins are created from the shell, never through signup
        if value == User.Roles.ADMIN:
            raise serializers.ValidationError("Cannot register as admin")
        return value

    def create(self, validated_data):
        user = User.objects.create_user(
            username=validated_data['username'],
            password=validated_data['password'],
            phone_number=validated_data.get('phone_number'),
            role=validated_data.get('role', User.Roles.CUSTOMER),
            address=validated_data.get('address', ''),
            lng=validated_data.get('lng'),
            lat=validated_data.get('lat'),
        )
        return user

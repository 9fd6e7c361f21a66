"""
Serializers for authentication, staff, roles, warehouses and history.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password

from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import History, Role, Warehouse

User = get_user_model()


class TenantPrimaryKeyRelatedField(serializers.PrimaryKeyRelatedField):
    """Primary key field that only resolves objects in the requesting user's tenant."""

    def get_queryset(self):
        queryset = super().get_queryset()
        request = self.context.get("request")
        if request is None or not request.user.is_authenticated:
            return queryset.none()
        return queryset.filter(tenant=request.user.tenant)


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    JWT token serializer that includes tenant and permission claims.
    """

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)

        # Add custom claims
        token["username"] = user.username
        token["user_type"] = user.user_type
        token["tenant_id"] = str(user.tenant_id) if user.tenant_id else None
        token["role"] = user.role.name if user.role_id else None

        return token

    def validate(self, attrs):
        data = super().validate(attrs)

        if self.user.tenant_id and not self.user.tenant.is_active():
            raise serializers.ValidationError(
                {"detail": "Your account is not active. Please contact support."}
            )

        data["user"] = {
            "id": self.user.id,
            "username": self.user.username,
            "email": self.user.email,
            "user_type": self.user.user_type,
            "tenant_id": str(self.user.tenant_id) if self.user.tenant_id else None,
            "permissions": user_permission_flags(self.user),
        }
        return data


def user_permission_flags(user):
    if user.is_tenant_owner():
        return list(Role.PERMISSION_FLAGS)
    if user.role_id:
        return user.role.granted_flags()
    return []


class RoleSerializer(serializers.ModelSerializer):
    staff_count = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = ["id", "name", "description", "permissions", "staff_count", "created_at"]
        read_only_fields = ["id", "created_at"]

    def get_staff_count(self, obj):
        return obj.users.count()

    def validate_permissions(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("Permissions must be an object of flag: boolean.")
        unknown = sorted(set(value) - set(Role.PERMISSION_FLAGS))
        if unknown:
            raise serializers.ValidationError(f"Unknown permission flags: {', '.join(unknown)}")
        not_bool = sorted(k for k, v in value.items() if not isinstance(v, bool))
        if not_bool:
            raise serializers.ValidationError(f"Flags must be true or false: {', '.join(not_bool)}")
        return value

    def validate_name(self, value):
        tenant = self.context["request"].user.tenant
        queryset = Role.objects.filter(tenant=tenant, name__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("A role with this name already exists.")
        return value


class WarehouseSerializer(serializers.ModelSerializer):
    manager = TenantPrimaryKeyRelatedField(
        queryset=User.objects.all(), required=False, allow_null=True
    )
    manager_name = serializers.CharField(source="manager.get_full_name", read_only=True)

    class Meta:
        model = Warehouse
        fields = [
            "id",
            "name",
            "code",
            "location",
            "capacity",
            "manager",
            "manager_name",
            "is_active",
            "mod_flag",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "mod_flag", "created_at", "updated_at"]

    def validate_name(self, value):
        tenant = self.context["request"].user.tenant
        queryset = Warehouse.all_objects.filter(tenant=tenant, name__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("A warehouse with this name already exists.")
        return value


class StaffSerializer(serializers.ModelSerializer):
    """Read/update serializer for tenant staff."""

    role = TenantPrimaryKeyRelatedField(queryset=Role.objects.all(), required=False, allow_null=True)
    role_name = serializers.CharField(source="role.name", read_only=True)
    warehouses = TenantPrimaryKeyRelatedField(
        queryset=Warehouse.objects.all(), many=True, required=False
    )
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "phone",
            "user_type",
            "role",
            "role_name",
            "warehouses",
            "permissions",
            "is_active",
            "date_joined",
        ]
        read_only_fields = ["id", "user_type", "date_joined"]

    def get_permissions(self, obj):
        return user_permission_flags(obj)


class StaffCreateSerializer(StaffSerializer):
    password = serializers.CharField(write_only=True, required=True)

    class Meta(StaffSerializer.Meta):
        fields = StaffSerializer.Meta.fields + ["password"]

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        warehouses = validated_data.pop("warehouses", [])
        password = validated_data.pop("password")
        user = User(**validated_data)
        user.user_type = User.TENANT_STAFF
        user.set_password(password)
        user.save()
        user.warehouses.set(warehouses)
        return user


class HistorySerializer(serializers.ModelSerializer):
    actor_name = serializers.CharField(source="actor.username", read_only=True, default=None)

    class Meta:
        model = History
        fields = [
            "id",
            "action_type",
            "entity_type",
            "entity_id",
            "message",
            "actor",
            "actor_name",
            "metadata",
            "created_at",
        ]
        read_only_fields = fields

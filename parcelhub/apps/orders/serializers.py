import re

from rest_framework import serializers

from apps.tenancy.models import PickupLocation

from .models import Order

_MOBILE_RE = re.compile(r'^[6-9]\d{9}$')


def normalize_mobile(value) -> str:
    """
    Reduce an Indian mobile number to its 10 subscriber digits.

    Accepts a bare number, a ``91`` / ``+91`` prefix, or ``91`` followed by a
    trunk ``0``. Returns '' when the input is not a valid mobile number.
    """
    digits = re.sub(r'\D', '', str(value or ''))
    if len(digits) == 12 and digits.startswith('91'):
        digits = digits[2:]
    elif len(digits) == 13 and digits.startswith('910'):
        digits = digits[3:]
    elif len(digits) == 11 and digits.startswith('0'):
        digits = digits[1:]
    return digits if _MOBILE_RE.match(digits) else ''


class OrderCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    mobile = serializers.CharField(max_length=20)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    address = serializers.CharField()
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100)
    country = serializers.CharField(max_length=100)
    pincode = serializers.CharField(max_length=12)
    courier_service = serializers.CharField(max_length=64)
    pickup_location = serializers.CharField(max_length=255)
    package_value = serializers.DecimalField(max_digits=12, decimal_places=2)
    weight = serializers.DecimalField(max_digits=10, decimal_places=3)
    total_items = serializers.IntegerField()
    is_cod = serializers.BooleanField(required=False, default=False)
    cod_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    product_description = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    tracking_id = serializers.CharField(max_length=128, required=False, allow_blank=True, default='')
    reseller_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    reseller_mobile = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')
    # custom reference value, formatted by the reference generator
    reference_number = serializers.CharField(max_length=64, required=False, allow_blank=True, allow_null=True)

    def validate_mobile(self, value):
        mobile = normalize_mobile(value)
        if not mobile:
            raise serializers.ValidationError('Mobile number must be exactly 10 digits and start with 6, 7, 8, or 9')
        return mobile

    def validate_reseller_mobile(self, value):
        if not value or value.strip().lower() == 'no number':
            return value
        mobile = normalize_mobile(value)
        if not mobile:
            raise serializers.ValidationError('Reseller mobile number must be exactly 10 digits and start with 6, 7, 8, or 9')
        return mobile

    def validate_package_value(self, value):
        if value <= 0:
            raise serializers.ValidationError('Package value must be positive')
        return value

    def validate_weight(self, value):
        if value <= 0:
            raise serializers.ValidationError('Weight must be positive')
        return value

    def validate_total_items(self, value):
        if value < 1:
            raise serializers.ValidationError('Total items must be at least 1')
        return value

    def validate_pickup_location(self, value):
        tenant_id = self.context.get('tenant_id')
        if tenant_id is not None and not PickupLocation.objects.filter(tenant_id=tenant_id, name=value).exists():
            raise serializers.ValidationError(f'Unknown pickup location "{value}"')
        return value

    def validate(self, attrs):
        if attrs.get('is_cod'):
            amount = attrs.get('cod_amount')
            if amount is None or amount <= 0:
                raise serializers.ValidationError({'cod_amount': 'COD amount is required for COD orders'})
        else:
            attrs['cod_amount'] = None
        return attrs


class OrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = [
            'id',
            'reference_number',
            'name',
            'mobile',
            'phone',
            'address',
            'city',
            'state',
            'country',
            'pincode',
            'courier_service',
            'pickup_location',
            'package_value',
            'weight',
            'total_items',
            'is_cod',
            'cod_amount',
            'product_description',
            'tracking_id',
            'tracking_status',
            'reseller_name',
            'reseller_mobile',
            'delhivery_waybill_number',
            'delhivery_order_id',
            'delhivery_api_status',
            'delhivery_api_error',
            'delhivery_retry_count',
            'last_delhivery_attempt',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class DispatchOutcomeSerializer(serializers.Serializer):
    attempted = serializers.BooleanField()
    success = serializers.BooleanField()
    waybill = serializers.CharField(allow_null=True)
    courierOrderId = serializers.CharField(allow_null=True)
    error = serializers.CharField(allow_null=True)


class OrderCreatedSerializer(OrderSerializer):
    dispatch = DispatchOutcomeSerializer()

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + ['dispatch']


class PaginationSerializer(serializers.Serializer):
    currentPage = serializers.IntegerField()
    totalPages = serializers.IntegerField()
    totalCount = serializers.IntegerField()
    hasNextPage = serializers.BooleanField()
    hasPrevPage = serializers.BooleanField()


class OrdersListResponseSerializer(serializers.Serializer):
    orders = OrderSerializer(many=True)
    pagination = PaginationSerializer()


class BulkDeleteSerializer(serializers.Serializer):
    orderIds = serializers.ListField(child=serializers.JSONField(), allow_empty=False)


class RefreshStatusesSerializer(serializers.Serializer):
    orderIds = serializers.ListField(child=serializers.JSONField(), allow_empty=False, max_length=100)

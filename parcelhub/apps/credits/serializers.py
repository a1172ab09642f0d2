from rest_framework import serializers

from .models import CreditAccount, CreditTransaction


class CreditAccountSerializer(serializers.ModelSerializer):
    totalAdded = serializers.DecimalField(source='total_added', max_digits=14, decimal_places=2, read_only=True)
    totalUsed = serializers.DecimalField(source='total_used', max_digits=14, decimal_places=2, read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = CreditAccount
        fields = ['balance', 'totalAdded', 'totalUsed', 'updatedAt']
        read_only_fields = fields


class CreditTransactionSerializer(serializers.ModelSerializer):
    balance = serializers.DecimalField(source='balance_after', max_digits=14, decimal_places=2, read_only=True)
    orderId = serializers.IntegerField(source='order_id', read_only=True, allow_null=True)
    orderReference = serializers.CharField(source='order_reference', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = CreditTransaction
        fields = ['id', 'type', 'amount', 'balance', 'description', 'feature', 'orderId', 'orderReference', 'createdAt']
        read_only_fields = fields


class CreditGroupSerializer(serializers.Serializer):
    orderId = serializers.CharField()
    orderReference = serializers.CharField()
    totalCredits = serializers.DecimalField(max_digits=14, decimal_places=2)
    transactions = CreditTransactionSerializer(many=True)
    createdAt = serializers.DateTimeField()
    lastUpdated = serializers.DateTimeField()


class CreditHistoryPaginationSerializer(serializers.Serializer):
    page = serializers.IntegerField()
    limit = serializers.IntegerField()
    total = serializers.IntegerField()
    totalPages = serializers.IntegerField()


class CreditHistoryResponseSerializer(serializers.Serializer):
    orderTransactions = CreditGroupSerializer(many=True)
    pagination = CreditHistoryPaginationSerializer()


class CreditAdjustmentSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['add', 'reset'])
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    description = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['action'] == 'add' and attrs['amount'] <= 0:
            raise serializers.ValidationError({'amount': 'Amount must be positive when adding credits.'})
        return attrs

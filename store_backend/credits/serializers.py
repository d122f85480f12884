# credits/serializers.py

from rest_framework import serializers

from credits.models import CreditTransaction


class CreditBalanceSerializer(serializers.Serializer):
    balance = serializers.IntegerField()
    total_earned = serializers.IntegerField()
    total_spent = serializers.IntegerField()
    transaction_count = serializers.IntegerField()
    currency = serializers.CharField()


class CreditTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = CreditTransaction
        fields = [
            "id",
            "sequence",
            "amount",
            "kind",
            "reference_id",
            "reference_type",
            "balance_before",
            "balance_after",
            "description",
            "created_at",
        ]
        read_only_fields = fields


class CreditAdjustmentSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    amount = serializers.IntegerField(help_text="Minor units; positive credits, negative debits")
    reason = serializers.CharField(max_length=255)
    reference_id = serializers.CharField(max_length=64, required=False, allow_blank=True)

    def validate_amount(self, value):
        if value == 0:
            raise serializers.ValidationError("Amount must not be zero.")
        return value


class LedgerAuditSerializer(serializers.Serializer):
    store_credit_id = serializers.CharField()
    user_id = serializers.CharField(allow_null=True)
    transaction_count = serializers.IntegerField()
    replayed_balance = serializers.IntegerField()
    stored_balance = serializers.IntegerField()
    ok = serializers.BooleanField()
    problems = serializers.ListField(child=serializers.CharField())

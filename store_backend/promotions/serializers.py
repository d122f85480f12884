# promotions/serializers.py

from rest_framework import serializers

from promotions.models import PromotionCode


class PromotionPreviewSerializer(serializers.Serializer):
    code = serializers.CharField()
    name = serializers.CharField()
    description = serializers.CharField()
    discount_type = serializers.CharField()
    discount_value = serializers.IntegerField()
    min_purchase = serializers.IntegerField()
    max_discount = serializers.IntegerField(allow_null=True)
    ends_at = serializers.DateTimeField()
    remaining_uses = serializers.IntegerField(allow_null=True)
    valid_now = serializers.BooleanField()


class PromotionCodeSerializer(serializers.ModelSerializer):
    class Meta:
        model = PromotionCode
        fields = [
            "id",
            "code",
            "name",
            "description",
            "discount_type",
            "discount_value",
            "min_purchase",
            "max_discount",
            "usage_limit",
            "usage_count",
            "starts_at",
            "ends_at",
            "applies_to",
            "applies_to_ids",
            "is_active",
            "is_first_order_code",
            "referral_bonus",
            "created_at",
        ]
        read_only_fields = [
            "id",
            "usage_count",
            "is_active",
            "is_first_order_code",
            "referral_bonus",
            "created_at",
        ]
        # uniqueness is decided by the code registry, not the table validator
        extra_kwargs = {"code": {"validators": []}}

    def validate(self, attrs):
        if attrs["ends_at"] < attrs["starts_at"]:
            raise serializers.ValidationError({"ends_at": "End must not be before start"})
        if attrs["discount_type"] == PromotionCode.TYPE_PERCENTAGE and not 0 < attrs["discount_value"] <= 100:
            raise serializers.ValidationError({"discount_value": "Percentage must be between 1 and 100"})
        return attrs

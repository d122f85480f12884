# checkout/serializers.py

from rest_framework import serializers

from checkout.models import PaymentConfirmation


class CartLineSerializer(serializers.Serializer):
    product_id = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    category_id = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    amount = serializers.IntegerField(min_value=0)


class QuoteRequestSerializer(serializers.Serializer):
    subtotal = serializers.IntegerField(min_value=0)
    promo_code = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    gift_card_code = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    requested_credit = serializers.IntegerField(min_value=0, required=False, default=0)
    lines = CartLineSerializer(many=True, required=False, default=list)


class DiscountInstructionSerializer(serializers.Serializer):
    amount_off = serializers.IntegerField()
    duration = serializers.CharField()
    name = serializers.CharField()


class QuoteResponseSerializer(serializers.Serializer):
    subtotal = serializers.IntegerField()
    discount = serializers.IntegerField()
    gift_amount = serializers.IntegerField()
    shipping = serializers.IntegerField()
    credit_for_goods = serializers.IntegerField()
    credit_for_ship = serializers.IntegerField()
    coupon_total = serializers.IntegerField()
    final_charge = serializers.IntegerField()
    store_credit_balance = serializers.IntegerField()
    ignored = serializers.DictField(child=serializers.CharField())
    discount_instruction = DiscountInstructionSerializer(allow_null=True)
    metadata = serializers.DictField(child=serializers.CharField())


class PaymentConfirmationSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentConfirmation
        fields = [
            "id",
            "payment_id",
            "user",
            "amount",
            "status",
            "gift_card_outcome",
            "promotion_outcome",
            "referral_outcome",
            "credit_outcome",
            "rejection_reason",
            "processed_at",
            "refunded_at",
        ]
        read_only_fields = fields

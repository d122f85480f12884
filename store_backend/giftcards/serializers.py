# giftcards/serializers.py

from rest_framework import serializers

from giftcards.models import GiftCard


class GiftCardRedeemSerializer(serializers.Serializer):
    qr_token = serializers.UUIDField()


class GiftCardRedeemResponseSerializer(serializers.Serializer):
    amount = serializers.IntegerField()
    balance = serializers.IntegerField()
    gift_card_id = serializers.UUIDField()


class GiftCardValidateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=32)


class GiftCardValidateResponseSerializer(serializers.Serializer):
    valid = serializers.BooleanField()
    reason = serializers.CharField(allow_null=True)
    available = serializers.IntegerField()


class GiftCardIssueSerializer(serializers.Serializer):
    amount = serializers.IntegerField(min_value=1, help_text="Minor units")
    code = serializers.CharField(max_length=32, required=False, allow_blank=True)
    validity_days = serializers.IntegerField(min_value=1, max_value=3650, required=False)
    recipient_name = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    recipient_email = serializers.EmailField(required=False, allow_blank=True, default="")
    sender_name = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    message = serializers.CharField(required=False, allow_blank=True, default="")
    template = serializers.ChoiceField(
        choices=GiftCard.TEMPLATE_CHOICES,
        required=False,
        default=GiftCard.TEMPLATE_DEFAULT,
    )


class GiftCardPreviewSerializer(serializers.ModelSerializer):
    """What the holder of a QR token may see. The full code is not exposed."""

    code_hint = serializers.SerializerMethodField()
    status = serializers.CharField(read_only=True)

    class Meta:
        model = GiftCard
        fields = [
            "id",
            "code_hint",
            "amount",
            "remaining_balance",
            "status",
            "expires_at",
            "recipient_name",
            "sender_name",
            "message",
            "template",
        ]
        read_only_fields = fields

    def get_code_hint(self, obj) -> str:
        return f"****-****-{obj.code[-4:]}"


class GiftCardAdminSerializer(serializers.ModelSerializer):
    status = serializers.CharField(read_only=True)
    purchased_by_email = serializers.EmailField(source="purchased_by.email", read_only=True, default=None)
    redeemed_by_email = serializers.EmailField(source="redeemed_by.email", read_only=True, default=None)

    class Meta:
        model = GiftCard
        fields = [
            "id",
            "code",
            "qr_token",
            "amount",
            "remaining_balance",
            "status",
            "is_active",
            "is_redeemed",
            "redeemed_at",
            "expires_at",
            "purchase_payment_id",
            "purchased_by_email",
            "redeemed_by_email",
            "recipient_name",
            "recipient_email",
            "sender_name",
            "message",
            "template",
            "created_at",
        ]
        read_only_fields = fields

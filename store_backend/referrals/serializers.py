# referrals/serializers.py

from rest_framework import serializers

from referrals.models import ReferralRelationship


def mask_email(email: str) -> str:
    local, _, domain = (email or "").partition("@")
    if not domain:
        return ""
    return f"{local[:1]}***@{domain}"


class ReferralStatsSerializer(serializers.Serializer):
    code = serializers.CharField()
    is_active = serializers.BooleanField()
    total_referrals = serializers.IntegerField()
    total_conversions = serializers.IntegerField()
    total_earned = serializers.IntegerField()
    pending = serializers.IntegerField()
    reward_amount = serializers.IntegerField()
    minimum_order = serializers.IntegerField()


class ReferralHistorySerializer(serializers.ModelSerializer):
    referee = serializers.SerializerMethodField()

    class Meta:
        model = ReferralRelationship
        fields = [
            "id",
            "referee",
            "status",
            "outcome",
            "reward_amount",
            "reward_credited",
            "converted_at",
            "revoked_at",
            "created_at",
        ]
        read_only_fields = fields

    def get_referee(self, obj) -> str:
        # referees are shown to the referrer masked
        return mask_email(obj.referee.email)


class ReferralEligibilitySerializer(serializers.Serializer):
    has_pending_referral = serializers.BooleanField()
    eligible = serializers.BooleanField()
    minimum_order = serializers.IntegerField()
    remaining = serializers.IntegerField()
    reward_amount = serializers.IntegerField()


class ReferralSignupSerializer(serializers.Serializer):
    referral_code = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")


class ReferralRevokeSerializer(serializers.Serializer):
    order_id = serializers.CharField(max_length=128)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")

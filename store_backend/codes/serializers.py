# codes/serializers.py

from rest_framework import serializers

from codes.models import CodeRegistryEntry


class CodeReserveSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=64)
    namespace = serializers.ChoiceField(choices=CodeRegistryEntry.NAMESPACE_CHOICES)
    block = serializers.BooleanField(required=False, default=False)


class CodeRegistryEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = CodeRegistryEntry
        fields = ["id", "code", "namespace", "reason", "owner_id", "registered_at"]
        read_only_fields = fields


class CodeAvailabilitySerializer(serializers.Serializer):
    code = serializers.CharField()
    available = serializers.BooleanField()

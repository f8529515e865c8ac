from __future__ import annotations

from rest_framework import serializers

from .models import Member


class MemberSerializer(serializers.ModelSerializer):
    saitamaAppId = serializers.CharField(source="saitama_app_id", read_only=True)
    postalCode = serializers.CharField(source="postal_code", read_only=True)
    birthDate = serializers.DateField(source="birth_date", read_only=True)
    genderLabel = serializers.CharField(source="get_gender_display", read_only=True)
    rankLabel = serializers.CharField(source="get_rank_display", read_only=True)
    registeredStoreId = serializers.UUIDField(source="registered_store_id", read_only=True, allow_null=True)
    registeredStoreName = serializers.SerializerMethodField()
    registeredAt = serializers.DateTimeField(source="registered_at", read_only=True)

    class Meta:
        model = Member
        fields = (
            "id",
            "nickname",
            "email",
            "saitamaAppId",
            "postalCode",
            "prefecture",
            "city",
            "address",
            "birthDate",
            "gender",
            "genderLabel",
            "rank",
            "rankLabel",
            "registeredStoreId",
            "registeredStoreName",
            "registeredAt",
        )
        read_only_fields = fields

    def get_registeredStoreName(self, obj: Member) -> str:
        return obj.registered_store.name if obj.registered_store_id else ""

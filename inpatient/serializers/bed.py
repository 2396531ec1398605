import bleach
from django.conf import settings
from rest_framework import serializers


def _clean_bed_no(v):
    v = bleach.clean((v or '').strip(), strip=True)
    if not v:
        raise serializers.ValidationError('Bed number is required.')
    return v


class BedWriteSerializer(serializers.Serializer):
    bedNo = serializers.CharField(max_length=50)
    wardId = serializers.IntegerField()
    isTaken = serializers.BooleanField(required=False, default=False)

    def validate_bedNo(self, v):
        return _clean_bed_no(v)


class BedItemSerializer(serializers.Serializer):
    bedNo = serializers.CharField(max_length=50)
    isTaken = serializers.BooleanField(required=False, default=False)

    def validate_bedNo(self, v):
        return _clean_bed_no(v)


class BedBatchSerializer(serializers.Serializer):
    """``{count, prefix, isTaken}`` for sequentially labelled beds."""
    count = serializers.IntegerField(min_value=1)
    prefix = serializers.CharField(required=False, allow_blank=True, max_length=20)
    isTaken = serializers.BooleanField(required=False, default=False)

    def validate_count(self, v):
        limit = getattr(settings, 'BED_BATCH_MAX', 200)
        if v > limit:
            raise serializers.ValidationError(f'At most {limit} beds may be created at once.')
        return v


class BedListQuerySerializer(serializers.Serializer):
    wardId = serializers.IntegerField(required=False)
    bedNo = serializers.CharField(required=False)

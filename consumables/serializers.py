from rest_framework import serializers

from .constants import (
    CATEGORY_CHEMICAL,
    CATEGORY_CHOICES,
    CENTRAL_STORE,
    EXPIRED_ACTIONS,
    INDENT_STATUS_CHOICES,
    KIND_INDENT,
    REQUEST_APPROVED,
    REQUEST_FULFILLED,
    REQUEST_REJECTED,
    REQUISITION_KIND_CHOICES,
    SESSION_CHOICES,
)
from .models import (
    EquipmentUnit,
    ExperimentRequest,
    ExpiredLotLog,
    Indent,
    IndentComment,
    IndentLine,
    ItemMaster,
    LineAllocation,
    LiveStock,
    OutOfStockEntry,
    RequestExperiment,
    RequestLine,
    StockTransaction,
)


class ItemMasterSerializer(serializers.ModelSerializer):
    """Purchase record of one received lot."""

    class Meta:
        model = ItemMaster
        fields = [
            "master_id",
            "category",
            "internal_name",
            "display_name",
            "variant",
            "quantity",
            "unit",
            "expiry_date",
            "batch_id",
            "vendor",
            "price_per_unit",
            "department",
            "created_by",
            "created_at",
        ]


class LiveStockSerializer(serializers.ModelSerializer):
    class Meta:
        model = LiveStock
        fields = [
            "lot_id",
            "master",
            "category",
            "internal_name",
            "display_name",
            "variant",
            "unit",
            "location",
            "quantity",
            "original_quantity",
            "expiry_date",
            "is_allocated",
            "updated_at",
        ]


class OutOfStockEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = OutOfStockEntry
        fields = ["display_name", "category", "variant", "unit", "last_out_of_stock"]


class StockTransactionSerializer(serializers.ModelSerializer):
    """Read-only view of a ledger row."""

    class Meta:
        model = StockTransaction
        fields = [
            "transaction_id",
            "lot_ref",
            "dest_lot_ref",
            "item_tag",
            "item_name",
            "category",
            "transaction_type",
            "quantity",
            "unit",
            "from_location",
            "to_location",
            "created_by",
            "related_indent",
            "related_request_id",
            "transaction_date",
        ]
        read_only_fields = fields


class EquipmentUnitSerializer(serializers.ModelSerializer):
    class Meta:
        model = EquipmentUnit
        fields = [
            "unit_id",
            "item_tag",
            "master",
            "name",
            "variant",
            "unit",
            "location",
            "status",
            "assigned_to",
            "warranty_until",
            "maintenance_cycle_days",
            "created_at",
        ]


class ExpiredLotLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = ExpiredLotLog
        fields = [
            "log_id",
            "lot_ref",
            "item_name",
            "display_name",
            "category",
            "unit",
            "quantity",
            "expiry_date",
            "location",
            "action",
            "reason",
            "removed_by",
            "removed_at",
        ]


class IndentLineSerializer(serializers.ModelSerializer):
    class Meta:
        model = IndentLine
        fields = [
            "id",
            "category",
            "item_name",
            "variant",
            "quantity",
            "unit",
            "price_per_unit",
            "remarks",
            "expiry_date",
            "allocated_quantity",
            "is_allocated",
        ]
        read_only_fields = ["id", "allocated_quantity", "is_allocated"]


class IndentCommentSerializer(serializers.ModelSerializer):
    class Meta:
        model = IndentComment
        fields = ["id", "text", "author", "role", "created_at"]
        read_only_fields = ["id", "author", "created_at"]


class IndentSerializer(serializers.ModelSerializer):
    """Indent or quotation with its lines and comment thread."""

    lines = IndentLineSerializer(many=True, read_only=True)
    comments = IndentCommentSerializer(many=True, read_only=True)

    class Meta:
        model = Indent
        fields = [
            "indent_id",
            "kind",
            "created_by",
            "creator_role",
            "lab_id",
            "vendor_name",
            "total_price",
            "status",
            "processed_by",
            "created_at",
            "updated_at",
            "lines",
            "comments",
        ]
        read_only_fields = fields


class LineAllocationSerializer(serializers.ModelSerializer):
    class Meta:
        model = LineAllocation
        fields = ["quantity", "allocated_by", "allocated_at"]


class RequestLineSerializer(serializers.ModelSerializer):
    history = LineAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = RequestLine
        fields = [
            "id",
            "category",
            "item_name",
            "variant",
            "quantity",
            "unit",
            "item_tag",
            "allocated_quantity",
            "is_allocated",
            "history",
        ]


class RequestExperimentSerializer(serializers.ModelSerializer):
    lines = RequestLineSerializer(many=True, read_only=True)

    class Meta:
        model = RequestExperiment
        fields = ["id", "name", "date", "session", "lines"]


class ExperimentRequestSerializer(serializers.ModelSerializer):
    experiments = RequestExperimentSerializer(many=True, read_only=True)

    class Meta:
        model = ExperimentRequest
        fields = [
            "request_id",
            "faculty",
            "lab_id",
            "status",
            "processed_by",
            "created_at",
            "updated_at",
            "experiments",
        ]
        read_only_fields = fields


# Request payloads -----------------------------------------------------------


class IntakeSerializer(serializers.Serializer):
    display_name = serializers.CharField(max_length=255)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0)
    unit = serializers.CharField(max_length=50)
    category = serializers.ChoiceField(choices=CATEGORY_CHOICES, default=CATEGORY_CHEMICAL)
    variant = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    expiry_date = serializers.DateField(required=False, allow_null=True, default=None)
    batch_id = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    vendor = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    price_per_unit = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True, default=None
    )
    department = serializers.CharField(
        max_length=100, required=False, allow_blank=True, default=""
    )
    warranty_until = serializers.DateField(required=False, allow_null=True, default=None)
    maintenance_cycle_days = serializers.IntegerField(
        required=False, allow_null=True, default=None, min_value=1
    )


class IntakeBatchSerializer(serializers.Serializer):
    items = IntakeSerializer(many=True, allow_empty=False)
    use_previous_batch_id = serializers.BooleanField(default=False)


class AllocationSerializer(serializers.Serializer):
    """Lines are validated one by one by the engine so each gets a verdict."""

    source = serializers.CharField(max_length=50, default=CENTRAL_STORE)
    destination = serializers.CharField(max_length=50)
    category = serializers.ChoiceField(choices=CATEGORY_CHOICES, default=CATEGORY_CHEMICAL)
    lines = serializers.ListField(child=serializers.DictField(), allow_empty=False)
    recipient = serializers.CharField(max_length=150, allow_blank=True, default="")


class ExpiredActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=[(a, a) for a in EXPIRED_ACTIONS])
    target_lot_id = serializers.IntegerField(required=False)
    expiry_date = serializers.DateField(required=False)
    reason = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if attrs["action"] == "merge" and not attrs.get("target_lot_id"):
            raise serializers.ValidationError({"target_lot_id": "Required to merge."})
        if attrs["action"] == "update_expiry" and not attrs.get("expiry_date"):
            raise serializers.ValidationError({"expiry_date": "Required to update expiry."})
        return attrs


class IndentLineInputSerializer(serializers.Serializer):
    item_name = serializers.CharField(max_length=255)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0)
    unit = serializers.CharField(max_length=50)
    category = serializers.ChoiceField(choices=CATEGORY_CHOICES, default=CATEGORY_CHEMICAL)
    variant = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    price_per_unit = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True
    )
    remarks = serializers.CharField(required=False, allow_blank=True, default="")
    expiry_date = serializers.DateField(required=False, allow_null=True)


class LabIndentCreateSerializer(serializers.Serializer):
    lab_id = serializers.CharField(max_length=50)
    kind = serializers.ChoiceField(choices=REQUISITION_KIND_CHOICES, default=KIND_INDENT)
    lines = IndentLineInputSerializer(many=True, allow_empty=False)


class DraftCreateSerializer(serializers.Serializer):
    vendor_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    lines = IndentLineInputSerializer(many=True, required=False)


class DraftLinesSerializer(serializers.Serializer):
    lines = IndentLineInputSerializer(many=True, allow_empty=False)


class IndentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=INDENT_STATUS_CHOICES)


class CommentInputSerializer(serializers.Serializer):
    text = serializers.CharField()
    role = serializers.CharField(max_length=30, required=False, allow_blank=True, default="")


class RemarksSerializer(serializers.Serializer):
    remarks = serializers.DictField(child=serializers.CharField(allow_blank=True))

    def validate_remarks(self, value):
        try:
            return {int(line_id): text for line_id, text in value.items()}
        except ValueError:
            raise serializers.ValidationError("Line ids must be integers.")


class StandardRemarkSerializer(serializers.Serializer):
    remark = serializers.CharField()


class RequestLineInputSerializer(serializers.Serializer):
    item_name = serializers.CharField(max_length=255)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=0)
    unit = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    category = serializers.ChoiceField(choices=CATEGORY_CHOICES, default=CATEGORY_CHEMICAL)
    variant = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    item_tag = serializers.UUIDField(required=False, allow_null=True)


class ExperimentInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    date = serializers.DateField(required=False, allow_null=True)
    session = serializers.ChoiceField(choices=SESSION_CHOICES, required=False, allow_blank=True)
    lines = RequestLineInputSerializer(many=True, allow_empty=False)


class ExperimentRequestCreateSerializer(serializers.Serializer):
    lab_id = serializers.CharField(max_length=50)
    experiments = ExperimentInputSerializer(many=True, allow_empty=False)


class ApproveRequestSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=[(s, s) for s in (REQUEST_APPROVED, REQUEST_REJECTED, REQUEST_FULFILLED)]
    )
    force = serializers.BooleanField(default=False)


class EquipmentScanSerializer(serializers.Serializer):
    item_tag = serializers.UUIDField()
    destination = serializers.CharField(max_length=50, required=False)
    recipient = serializers.CharField(max_length=150, allow_blank=True, default="")

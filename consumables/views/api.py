from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from core.throttles import AllocationRateThrottle

from ..constants import CATEGORY_CHEMICAL, CENTRAL_STORE
from ..models import (
    EquipmentUnit,
    ExperimentRequest,
    ExpiredLotLog,
    Indent,
    ItemMaster,
    LiveStock,
    StockTransaction,
)
from ..serializers import (
    AllocationSerializer,
    ApproveRequestSerializer,
    CommentInputSerializer,
    DraftCreateSerializer,
    DraftLinesSerializer,
    EquipmentScanSerializer,
    EquipmentUnitSerializer,
    ExperimentRequestCreateSerializer,
    ExperimentRequestSerializer,
    ExpiredActionSerializer,
    ExpiredLotLogSerializer,
    IndentCommentSerializer,
    IndentSerializer,
    IndentStatusSerializer,
    IntakeBatchSerializer,
    IntakeSerializer,
    ItemMasterSerializer,
    LabIndentCreateSerializer,
    LiveStockSerializer,
    OutOfStockEntrySerializer,
    RemarksSerializer,
    StandardRemarkSerializer,
    StockTransactionSerializer,
)
from ..services import (
    allocation_service,
    equipment_service,
    expiry_service,
    indent_service,
    intake_service,
    ledger_service,
    out_of_stock,
    request_service,
    stock_queries,
)


def _actor(request) -> str:
    return request.user.get_username() or "anonymous"


def _intake_payload(received):
    master, stock = received
    payload = {"master": ItemMasterSerializer(master).data}
    if isinstance(stock, list):
        payload["units"] = EquipmentUnitSerializer(stock, many=True).data
    else:
        payload["lot"] = LiveStockSerializer(stock).data
    return payload


class LiveStockView(APIView):
    """Stock at one location grouped by display name.

    Query params:
        location: defaults to the central store.
        category: optional category filter.
    """

    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        location = request.query_params.get("location") or CENTRAL_STORE
        category = request.query_params.get("category") or None
        return Response(stock_queries.get_live_stock(location, category))


class LiveStockViewSet(viewsets.ReadOnlyModelViewSet):
    """Individual lots, with their ledger history."""

    lookup_value_regex = r"\d+"
    queryset = LiveStock.objects.all().order_by("location", "display_name", "lot_id")
    serializer_class = LiveStockSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        queryset = super().get_queryset()
        location = self.request.query_params.get("location")
        if location:
            queryset = queryset.filter(location=location)
        name = self.request.query_params.get("name")
        if name:
            queryset = queryset.filter(display_name__icontains=name)
        return queryset

    @action(detail=True, methods=["get"])
    def history(self, request, pk=None):
        return Response(ledger_service.get_lot_history(int(pk)))

    @action(detail=True, methods=["post"], url_path="expired-action")
    def expired_action(self, request, pk=None):
        serializer = ExpiredActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = dict(serializer.validated_data)
        action_name = params.pop("action")
        result = expiry_service.process_expired_action(
            int(pk), action_name, params, actor=_actor(request)
        )
        return Response(result)

    @action(detail=False, methods=["get"])
    def expired(self, request):
        lots = expiry_service.list_expired(request.query_params.get("location"))
        return Response(LiveStockSerializer(lots, many=True).data)

    @action(detail=False, methods=["get"])
    def expiring(self, request):
        days = request.query_params.get("days")
        lots = expiry_service.list_expiring(
            int(days) if days else None, request.query_params.get("location")
        )
        return Response(LiveStockSerializer(lots, many=True).data)


class ItemMasterViewSet(viewsets.ReadOnlyModelViewSet):
    """Central master records.

    Query params:
        category: exact category match.
    """

    queryset = ItemMaster.objects.all()
    serializer_class = ItemMasterSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return stock_queries.get_central_master(self.request.query_params.get("category"))

    @action(detail=False, methods=["get"], url_path="batch-id")
    def batch_id(self, request):
        category = request.query_params.get("category") or CATEGORY_CHEMICAL
        return Response(
            {
                "next": intake_service.generate_batch_id(category),
                "last": intake_service.last_batch_id(category),
            }
        )


class IntakeView(APIView):
    """Receive one item, or a whole invoice when ``items`` is posted."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        if "items" in request.data:
            serializer = IntakeBatchSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            results = intake_service.intake_many(
                [dict(item) for item in serializer.validated_data["items"]],
                actor=_actor(request),
                use_previous_batch_id=serializer.validated_data["use_previous_batch_id"],
            )
            return Response(
                [_intake_payload(result) for result in results],
                status=status.HTTP_201_CREATED,
            )
        serializer = IntakeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = intake_service.intake(actor=_actor(request), **serializer.validated_data)
        return Response(_intake_payload(result), status=status.HTTP_201_CREATED)


class AllocationView(APIView):
    """Allocate stock.

    A failed batch is raised as a stock error, so the exception handler answers
    with its status code and the per-line diagnostics under ``details``.
    """

    permission_classes = [permissions.IsAuthenticated]
    throttle_classes = [AllocationRateThrottle]

    def post(self, request):
        serializer = AllocationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = allocation_service.allocate(
            data["source"],
            data["destination"],
            data["lines"],
            actor=_actor(request),
            category=data["category"],
            recipient=data["recipient"],
        )
        result.raise_for_status()
        return Response(result.as_dict())


class OutOfStockView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        entries = out_of_stock.list_out_of_stock(request.query_params.get("category"))
        return Response(OutOfStockEntrySerializer(entries, many=True).data)


class StockTransactionViewSet(viewsets.ReadOnlyModelViewSet):
    """Ledger listing.

    Query params:
        lot, location, type, item, category, indent, request, tag: filters.
    """

    queryset = StockTransaction.objects.all()
    serializer_class = StockTransactionSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        params = self.request.query_params

        def _int(name):
            value = params.get(name)
            return int(value) if value and value.isdigit() else None

        return ledger_service.get_transactions(
            lot_ref=_int("lot"),
            location=params.get("location"),
            transaction_type=params.get("type"),
            item_name=params.get("item"),
            category=params.get("category"),
            related_indent_id=_int("indent"),
            related_request_id=_int("request"),
            item_tag=params.get("tag"),
        )


class ExpiredLotLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = ExpiredLotLog.objects.all()
    serializer_class = ExpiredLotLogSerializer
    permission_classes = [permissions.IsAuthenticated]


class IndentViewSet(viewsets.ReadOnlyModelViewSet):
    """Indents and quotations with their workflow actions.

    Query params:
        status: exact status match.
        lab: exact lab match.
    """

    queryset = Indent.objects.all().prefetch_related("lines", "comments")
    lookup_value_regex = r"\d+"
    serializer_class = IndentSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        queryset = super().get_queryset()
        status_param = self.request.query_params.get("status")
        if status_param:
            queryset = queryset.filter(status=status_param)
        lab = self.request.query_params.get("lab")
        if lab:
            queryset = queryset.filter(lab_id=lab)
        return queryset

    def _respond(self, indent, code=status.HTTP_200_OK, results=None):
        indent.refresh_from_db()
        data = IndentSerializer(indent).data
        if results is not None:
            data["allocations"] = [result.as_dict() for result in results]
        return Response(data, status=code)

    def create(self, request):
        serializer = LabIndentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        indent = indent_service.create_lab_indent(
            data["lab_id"],
            [dict(line) for line in data["lines"]],
            actor=_actor(request),
            kind=data["kind"],
        )
        return self._respond(indent, status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"])
    def drafts(self, request):
        serializer = DraftCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        indent = indent_service.create_draft(
            _actor(request),
            vendor_name=data.get("vendor_name"),
            lines=[dict(line) for line in data.get("lines", [])],
        )
        return self._respond(indent, status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def lines(self, request, pk=None):
        serializer = DraftLinesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        indent = indent_service.add_lines_to_draft(
            int(pk), [dict(line) for line in serializer.validated_data["lines"]]
        )
        return self._respond(indent)

    @action(detail=True, methods=["post"])
    def submit(self, request, pk=None):
        return self._respond(indent_service.submit_draft(int(pk), _actor(request)))

    @action(detail=True, methods=["post"])
    def comments(self, request, pk=None):
        serializer = CommentInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = indent_service.add_comment(
            int(pk),
            serializer.validated_data["text"],
            author=_actor(request),
            role=serializer.validated_data["role"],
        )
        return Response(IndentCommentSerializer(comment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def remarks(self, request, pk=None):
        serializer = RemarksSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = indent_service.update_line_remarks(int(pk), serializer.validated_data["remarks"])
        return Response({"updated": updated})

    @action(detail=True, methods=["post"], url_path="standard-remark")
    def standard_remark(self, request, pk=None):
        serializer = StandardRemarkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = indent_service.apply_standard_remark(
            int(pk), serializer.validated_data["remark"]
        )
        return Response({"updated": updated})

    @action(detail=True, methods=["post"])
    def process(self, request, pk=None):
        serializer = IndentStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_status = serializer.validated_data["status"]
        indent = indent_service.get_indent(int(pk))
        if indent.lab_id:
            indent, results = indent_service.process_lab_indent(
                indent.pk, new_status, _actor(request)
            )
            return self._respond(indent, results=results)
        indent = indent_service.process_central_indent(indent.pk, new_status, _actor(request))
        return self._respond(indent)

    @action(detail=True, methods=["post"], url_path="fulfill-remaining")
    def fulfill_remaining(self, request, pk=None):
        indent, results = indent_service.fulfill_remaining_indent(int(pk), _actor(request))
        return self._respond(indent, results=results)


class ExperimentRequestViewSet(viewsets.ReadOnlyModelViewSet):
    """Faculty experiment requests.

    ``approve`` with status ``fulfilled`` answers 206 with a preview when
    some lines are short and ``force`` was not set.
    """

    queryset = ExperimentRequest.objects.all().prefetch_related("experiments__lines__history")
    lookup_value_regex = r"\d+"
    serializer_class = ExperimentRequestSerializer
    permission_classes = [permissions.IsAuthenticated]

    def create(self, request):
        serializer = ExperimentRequestCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        experiments = [
            {**dict(entry), "lines": [dict(line) for line in entry["lines"]]}
            for entry in data["experiments"]
        ]
        created = request_service.create_request(_actor(request), data["lab_id"], experiments)
        return Response(
            ExperimentRequestSerializer(created).data, status=status.HTTP_201_CREATED
        )

    def _outcome_response(self, outcome):
        code = (
            status.HTTP_206_PARTIAL_CONTENT
            if outcome.requires_confirmation
            else status.HTTP_200_OK
        )
        data = outcome.as_dict()
        data["request"] = ExperimentRequestSerializer(
            ExperimentRequest.objects.get(pk=outcome.request.pk)
        ).data
        return Response(data, status=code)

    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        serializer = ApproveRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = request_service.approve_request(
            int(pk),
            serializer.validated_data["status"],
            _actor(request),
            force=serializer.validated_data["force"],
        )
        return self._outcome_response(outcome)

    @action(detail=True, methods=["post"], url_path="fulfill-remaining")
    def fulfill_remaining(self, request, pk=None):
        return self._outcome_response(request_service.fulfill_remaining(int(pk), _actor(request)))


class EquipmentUnitViewSet(viewsets.ReadOnlyModelViewSet):
    """Tagged equipment units with scan allocate and return.

    Query params:
        location, status, name: filters.
    """

    queryset = EquipmentUnit.objects.all()
    serializer_class = EquipmentUnitSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        params = self.request.query_params
        return equipment_service.list_units(
            params.get("location"), params.get("status"), params.get("name")
        )

    @action(detail=False, methods=["post"], throttle_classes=[AllocationRateThrottle])
    def scan(self, request):
        serializer = EquipmentScanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if not serializer.validated_data.get("destination"):
            return Response(
                {"destination": ["This field is required."], "status_code": 400},
                status=status.HTTP_400_BAD_REQUEST,
            )
        unit = equipment_service.allocate_equipment_unit(
            serializer.validated_data["item_tag"],
            serializer.validated_data["destination"],
            actor=_actor(request),
            recipient=serializer.validated_data["recipient"],
        )
        return Response(EquipmentUnitSerializer(unit).data)

    @action(detail=False, methods=["post"], url_path="return")
    def return_unit(self, request):
        serializer = EquipmentScanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        unit = equipment_service.return_equipment_unit(
            serializer.validated_data["item_tag"], actor=_actor(request)
        )
        return Response(EquipmentUnitSerializer(unit).data)

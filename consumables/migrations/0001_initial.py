import uuid
from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models

import consumables.models.fields

CATEGORY_CHOICES = [
    ("chemical", "Chemical"),
    ("glassware", "Glassware"),
    ("equipment", "Equipment"),
    ("others", "Other product"),
]
TRANSACTION_TYPE_CHOICES = [
    ("entry", "Entry"),
    ("issue", "Issue"),
    ("allocation", "Allocation"),
    ("transfer", "Transfer"),
    ("purchase", "Purchase"),
    ("return", "Return"),
]
INDENT_STATUS_CHOICES = [
    ("draft", "Draft"),
    ("pending", "Pending"),
    ("reviewed", "Reviewed"),
    ("approved", "Approved"),
    ("allocated", "Allocated"),
    ("fulfilled", "Fulfilled"),
    ("partially_fulfilled", "Partially Fulfilled"),
    ("purchasing", "Purchasing"),
    ("purchased", "Purchased"),
    ("rejected", "Rejected"),
]
REQUEST_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("approved", "Approved"),
    ("rejected", "Rejected"),
    ("fulfilled", "Fulfilled"),
    ("partially_fulfilled", "Partially Fulfilled"),
]
EQUIPMENT_STATUS_CHOICES = [
    ("Available", "Available"),
    ("Issued", "Issued"),
    ("Returned", "Returned"),
    ("Maintenance", "Maintenance"),
    ("Discarded", "Discarded"),
]


def quantity_field(**kwargs):
    return consumables.models.fields.QuantityField(
        decimal_places=3, default=Decimal("0"), max_digits=12, **kwargs
    )


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ItemMaster",
            fields=[
                ("master_id", models.AutoField(primary_key=True, serialize=False)),
                ("category", models.CharField(choices=CATEGORY_CHOICES, default="chemical", max_length=20)),
                ("internal_name", models.CharField(max_length=255)),
                ("display_name", models.CharField(db_index=True, max_length=255)),
                ("variant", models.CharField(blank=True, default="", max_length=100)),
                ("quantity", quantity_field()),
                ("unit", models.CharField(max_length=50)),
                ("expiry_date", models.DateField(blank=True, null=True)),
                ("batch_id", models.CharField(blank=True, db_index=True, default="", max_length=50)),
                ("vendor", models.CharField(blank=True, default="", max_length=255)),
                ("price_per_unit", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("department", models.CharField(blank=True, default="", max_length=100)),
                ("created_by", models.CharField(blank=True, default="", max_length=150)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={"db_table": "item_masters", "ordering": ["-created_at", "-master_id"]},
        ),
        migrations.CreateModel(
            name="Indent",
            fields=[
                ("indent_id", models.AutoField(primary_key=True, serialize=False)),
                ("kind", models.CharField(choices=[("indent", "Indent"), ("quotation", "Quotation")], default="indent", max_length=20)),
                ("created_by", models.CharField(max_length=150)),
                ("creator_role", models.CharField(choices=[("lab_assistant", "Lab assistant"), ("central_lab_admin", "Central lab admin")], max_length=30)),
                ("lab_id", models.CharField(blank=True, max_length=50, null=True)),
                ("vendor_name", models.CharField(blank=True, max_length=255, null=True)),
                ("total_price", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=14)),
                ("status", models.CharField(choices=INDENT_STATUS_CHOICES, default="pending", max_length=30)),
                ("processed_by", models.CharField(blank=True, default="", max_length=150)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"db_table": "indents", "ordering": ["-created_at", "-indent_id"]},
        ),
        migrations.CreateModel(
            name="ExperimentRequest",
            fields=[
                ("request_id", models.AutoField(primary_key=True, serialize=False)),
                ("faculty", models.CharField(max_length=150)),
                ("lab_id", models.CharField(max_length=50)),
                ("status", models.CharField(choices=REQUEST_STATUS_CHOICES, default="pending", max_length=30)),
                ("processed_by", models.CharField(blank=True, default="", max_length=150)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={"db_table": "experiment_requests", "ordering": ["-created_at", "-request_id"]},
        ),
        migrations.CreateModel(
            name="LiveStock",
            fields=[
                ("lot_id", models.AutoField(primary_key=True, serialize=False)),
                ("category", models.CharField(choices=CATEGORY_CHOICES, default="chemical", max_length=20)),
                ("internal_name", models.CharField(max_length=255)),
                ("display_name", models.CharField(db_index=True, max_length=255)),
                ("variant", models.CharField(blank=True, default="", max_length=100)),
                ("unit", models.CharField(max_length=50)),
                ("location", models.CharField(db_index=True, max_length=50)),
                ("quantity", quantity_field()),
                ("original_quantity", quantity_field()),
                ("expiry_date", models.DateField(blank=True, null=True)),
                ("is_allocated", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "master",
                    models.ForeignKey(
                        db_column="master_id",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="lots",
                        to="consumables.itemmaster",
                    ),
                ),
            ],
            options={
                "db_table": "live_stock",
                "constraints": [
                    models.UniqueConstraint(fields=("master", "location"), name="uniq_lot_master_location"),
                    models.UniqueConstraint(
                        condition=models.Q(("is_allocated", True)),
                        fields=("display_name", "category", "variant", "location"),
                        name="uniq_lab_lot_identity",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 0)), name="lot_quantity_non_negative"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OutOfStockEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("display_name", models.CharField(max_length=255)),
                ("category", models.CharField(choices=CATEGORY_CHOICES, default="chemical", max_length=20)),
                ("variant", models.CharField(blank=True, default="", max_length=100)),
                ("unit", models.CharField(blank=True, default="", max_length=50)),
                ("last_out_of_stock", models.DateTimeField()),
            ],
            options={
                "db_table": "out_of_stock",
                "ordering": ["-last_out_of_stock"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("display_name", "category", "variant"), name="uniq_out_of_stock_identity"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="ExpiredLotLog",
            fields=[
                ("log_id", models.AutoField(primary_key=True, serialize=False)),
                ("lot_ref", models.IntegerField()),
                ("item_name", models.CharField(max_length=255)),
                ("display_name", models.CharField(max_length=255)),
                ("category", models.CharField(choices=CATEGORY_CHOICES, max_length=20)),
                ("unit", models.CharField(blank=True, default="", max_length=50)),
                ("quantity", quantity_field()),
                ("expiry_date", models.DateField(blank=True, null=True)),
                ("location", models.CharField(max_length=50)),
                ("action", models.CharField(max_length=20)),
                ("reason", models.TextField(blank=True, default="")),
                ("removed_by", models.CharField(blank=True, default="", max_length=150)),
                ("removed_at", models.DateTimeField(auto_now_add=True)),
                (
                    "master",
                    models.ForeignKey(
                        blank=True,
                        db_column="master_id",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to="consumables.itemmaster",
                    ),
                ),
            ],
            options={"db_table": "expired_lot_log", "ordering": ["-removed_at"]},
        ),
        migrations.CreateModel(
            name="StockTransaction",
            fields=[
                ("transaction_id", models.AutoField(primary_key=True, serialize=False)),
                ("lot_ref", models.IntegerField(blank=True, db_index=True, null=True)),
                ("dest_lot_ref", models.IntegerField(blank=True, db_index=True, null=True)),
                ("item_name", models.CharField(max_length=255)),
                ("category", models.CharField(choices=CATEGORY_CHOICES, max_length=20)),
                ("transaction_type", models.CharField(choices=TRANSACTION_TYPE_CHOICES, max_length=20)),
                ("quantity", quantity_field()),
                ("unit", models.CharField(blank=True, default="", max_length=50)),
                ("from_location", models.CharField(blank=True, default="", max_length=50)),
                ("to_location", models.CharField(blank=True, default="", max_length=50)),
                ("created_by", models.CharField(blank=True, default="", max_length=150)),
                ("related_request_id", models.IntegerField(blank=True, null=True)),
                ("transaction_date", models.DateTimeField(auto_now_add=True)),
                (
                    "related_indent",
                    models.ForeignKey(
                        blank=True,
                        db_column="related_indent_id",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="consumables.indent",
                    ),
                ),
            ],
            options={"db_table": "stock_transactions", "ordering": ["-transaction_date", "-transaction_id"]},
        ),
        migrations.CreateModel(
            name="EquipmentUnit",
            fields=[
                ("unit_id", models.AutoField(primary_key=True, serialize=False)),
                ("item_tag", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("name", models.CharField(db_index=True, max_length=255)),
                ("variant", models.CharField(blank=True, default="", max_length=100)),
                ("unit", models.CharField(blank=True, default="nos", max_length=50)),
                ("location", models.CharField(db_index=True, max_length=50)),
                ("status", models.CharField(choices=EQUIPMENT_STATUS_CHOICES, default="Available", max_length=20)),
                ("assigned_to", models.CharField(blank=True, default="", max_length=150)),
                ("warranty_until", models.DateField(blank=True, null=True)),
                ("maintenance_cycle_days", models.PositiveIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "master",
                    models.ForeignKey(
                        db_column="master_id",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="units",
                        to="consumables.itemmaster",
                    ),
                ),
            ],
            options={"db_table": "equipment_units", "ordering": ["created_at", "unit_id"]},
        ),
        migrations.CreateModel(
            name="IndentLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("category", models.CharField(choices=CATEGORY_CHOICES, default="chemical", max_length=20)),
                ("item_name", models.CharField(max_length=255)),
                ("variant", models.CharField(blank=True, default="", max_length=100)),
                ("quantity", quantity_field()),
                ("unit", models.CharField(max_length=50)),
                ("price_per_unit", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("remarks", models.TextField(blank=True, default="")),
                ("expiry_date", models.DateField(blank=True, null=True)),
                ("allocated_quantity", quantity_field()),
                ("is_allocated", models.BooleanField(default=False)),
                (
                    "indent",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="consumables.indent",
                    ),
                ),
            ],
            options={"db_table": "indent_lines", "ordering": ["id"]},
        ),
        migrations.CreateModel(
            name="IndentComment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("text", models.TextField()),
                ("author", models.CharField(max_length=150)),
                ("role", models.CharField(blank=True, default="", max_length=30)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "indent",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="comments",
                        to="consumables.indent",
                    ),
                ),
            ],
            options={"db_table": "indent_comments", "ordering": ["created_at", "id"]},
        ),
        migrations.CreateModel(
            name="RequestExperiment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("date", models.DateField(blank=True, null=True)),
                ("session", models.CharField(blank=True, choices=[("morning", "Morning"), ("afternoon", "Afternoon")], max_length=20)),
                (
                    "request",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="experiments",
                        to="consumables.experimentrequest",
                    ),
                ),
            ],
            options={"db_table": "request_experiments", "ordering": ["id"]},
        ),
        migrations.CreateModel(
            name="RequestLine",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("category", models.CharField(choices=CATEGORY_CHOICES, default="chemical", max_length=20)),
                ("item_name", models.CharField(max_length=255)),
                ("variant", models.CharField(blank=True, default="", max_length=100)),
                ("quantity", quantity_field()),
                ("unit", models.CharField(blank=True, default="", max_length=50)),
                ("item_tag", models.UUIDField(blank=True, null=True)),
                ("allocated_quantity", quantity_field()),
                ("is_allocated", models.BooleanField(default=False)),
                (
                    "experiment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="consumables.requestexperiment",
                    ),
                ),
            ],
            options={"db_table": "request_lines", "ordering": ["id"]},
        ),
        migrations.CreateModel(
            name="LineAllocation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity", quantity_field()),
                ("allocated_by", models.CharField(blank=True, default="", max_length=150)),
                ("allocated_at", models.DateTimeField(auto_now_add=True)),
                (
                    "line",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="history",
                        to="consumables.requestline",
                    ),
                ),
            ],
            options={"db_table": "request_line_allocations", "ordering": ["allocated_at", "id"]},
        ),
    ]

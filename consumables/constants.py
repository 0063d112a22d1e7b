# consumables/constants.py

from django.conf import settings

# ─────────────────────────────────────────────────────────
# LOCATIONS
# ─────────────────────────────────────────────────────────
CENTRAL_STORE = getattr(settings, "CENTRAL_STORE_ID", "central-lab")
LAB_IDS = list(getattr(settings, "LAB_IDS", [f"LAB{n:02d}" for n in range(1, 9)]))
ALL_LOCATIONS = [CENTRAL_STORE, *LAB_IDS]
LOCATION_CHOICES = [(loc, loc) for loc in ALL_LOCATIONS]

# Pseudo-locations that only ever appear on ledger rows
VENDOR = "vendor"
FACULTY = "faculty"

# ─────────────────────────────────────────────────────────
# ITEM CATEGORIES
# ─────────────────────────────────────────────────────────
CATEGORY_CHEMICAL = "chemical"
CATEGORY_GLASSWARE = "glassware"
CATEGORY_EQUIPMENT = "equipment"
CATEGORY_OTHERS = "others"
CATEGORY_CHOICES = [
    (CATEGORY_CHEMICAL, "Chemical"),
    (CATEGORY_GLASSWARE, "Glassware"),
    (CATEGORY_EQUIPMENT, "Equipment"),
    (CATEGORY_OTHERS, "Other product"),
]
BATCH_PREFIXES = {
    CATEGORY_CHEMICAL: "BATCH",
    CATEGORY_GLASSWARE: "GLASS",
    CATEGORY_EQUIPMENT: "EQUIP",
    CATEGORY_OTHERS: "OTHER",
}

# ─────────────────────────────────────────────────────────
# LEDGER MOVEMENT KINDS
# ─────────────────────────────────────────────────────────
TX_ENTRY = "entry"
TX_ISSUE = "issue"
TX_ALLOCATION = "allocation"
TX_TRANSFER = "transfer"
TX_PURCHASE = "purchase"
TX_RETURN = "return"
TRANSACTION_TYPE_CHOICES = [
    (TX_ENTRY, "Entry"),
    (TX_ISSUE, "Issue"),
    (TX_ALLOCATION, "Allocation"),
    (TX_TRANSFER, "Transfer"),
    (TX_PURCHASE, "Purchase"),
    (TX_RETURN, "Return"),
]

# ─────────────────────────────────────────────────────────
# EQUIPMENT UNIT STATUS
# ─────────────────────────────────────────────────────────
EQUIPMENT_AVAILABLE = "Available"
EQUIPMENT_ISSUED = "Issued"
EQUIPMENT_RETURNED = "Returned"
EQUIPMENT_MAINTENANCE = "Maintenance"
EQUIPMENT_DISCARDED = "Discarded"
EQUIPMENT_STATUS_CHOICES = [
    (s, s)
    for s in (
        EQUIPMENT_AVAILABLE,
        EQUIPMENT_ISSUED,
        EQUIPMENT_RETURNED,
        EQUIPMENT_MAINTENANCE,
        EQUIPMENT_DISCARDED,
    )
]

# ─────────────────────────────────────────────────────────
# PROCUREMENT (INDENT / QUOTATION) STATUS
# ─────────────────────────────────────────────────────────
INDENT_DRAFT = "draft"
INDENT_PENDING = "pending"
INDENT_REVIEWED = "reviewed"
INDENT_APPROVED = "approved"
INDENT_ALLOCATED = "allocated"
INDENT_FULFILLED = "fulfilled"
INDENT_PARTIALLY_FULFILLED = "partially_fulfilled"
INDENT_PURCHASING = "purchasing"
INDENT_PURCHASED = "purchased"
INDENT_REJECTED = "rejected"
INDENT_STATUS_CHOICES = [
    (s, s.replace("_", " ").title())
    for s in (
        INDENT_DRAFT,
        INDENT_PENDING,
        INDENT_REVIEWED,
        INDENT_APPROVED,
        INDENT_ALLOCATED,
        INDENT_FULFILLED,
        INDENT_PARTIALLY_FULFILLED,
        INDENT_PURCHASING,
        INDENT_PURCHASED,
        INDENT_REJECTED,
    )
]
INDENT_TERMINAL_STATUSES = {INDENT_REJECTED, INDENT_PURCHASED, INDENT_FULFILLED}

KIND_INDENT = "indent"
KIND_QUOTATION = "quotation"
REQUISITION_KIND_CHOICES = [(KIND_INDENT, "Indent"), (KIND_QUOTATION, "Quotation")]

ROLE_LAB_ASSISTANT = "lab_assistant"
ROLE_CENTRAL_ADMIN = "central_lab_admin"
ROLE_ADMIN = "admin"
ROLE_FACULTY = "faculty"
CREATOR_ROLE_CHOICES = [
    (ROLE_LAB_ASSISTANT, "Lab assistant"),
    (ROLE_CENTRAL_ADMIN, "Central lab admin"),
]

# ─────────────────────────────────────────────────────────
# EXPERIMENT REQUEST STATUS
# ─────────────────────────────────────────────────────────
REQUEST_PENDING = "pending"
REQUEST_APPROVED = "approved"
REQUEST_REJECTED = "rejected"
REQUEST_FULFILLED = "fulfilled"
REQUEST_PARTIALLY_FULFILLED = "partially_fulfilled"
REQUEST_STATUS_CHOICES = [
    (s, s.replace("_", " ").title())
    for s in (
        REQUEST_PENDING,
        REQUEST_APPROVED,
        REQUEST_REJECTED,
        REQUEST_FULFILLED,
        REQUEST_PARTIALLY_FULFILLED,
    )
]
SESSION_CHOICES = [("morning", "Morning"), ("afternoon", "Afternoon")]

# ─────────────────────────────────────────────────────────
# EXPIRED LOT ACTIONS
# ─────────────────────────────────────────────────────────
EXPIRED_MERGE = "merge"
EXPIRED_DELETE = "delete"
EXPIRED_UPDATE_EXPIRY = "update_expiry"
EXPIRED_ACTIONS = (EXPIRED_MERGE, EXPIRED_DELETE, EXPIRED_UPDATE_EXPIRY)

# ─────────────────────────────────────────────────────────
# WORKFLOW TRANSITIONS
# ─────────────────────────────────────────────────────────
INDENT_TRANSITIONS = {
    INDENT_DRAFT: {INDENT_PENDING, INDENT_REJECTED},
    INDENT_PENDING: {
        INDENT_REVIEWED,
        INDENT_APPROVED,
        INDENT_ALLOCATED,
        INDENT_PARTIALLY_FULFILLED,
        INDENT_PURCHASING,
        INDENT_PURCHASED,
        INDENT_REJECTED,
    },
    INDENT_REVIEWED: {INDENT_ALLOCATED, INDENT_PARTIALLY_FULFILLED, INDENT_REJECTED},
    INDENT_APPROVED: {INDENT_PURCHASING, INDENT_PURCHASED, INDENT_REJECTED},
    INDENT_PURCHASING: {INDENT_PURCHASED, INDENT_REJECTED},
    INDENT_PARTIALLY_FULFILLED: {INDENT_ALLOCATED, INDENT_PARTIALLY_FULFILLED},
    INDENT_ALLOCATED: {INDENT_FULFILLED},
}

REQUEST_TRANSITIONS = {
    REQUEST_PENDING: {
        REQUEST_APPROVED,
        REQUEST_REJECTED,
        REQUEST_FULFILLED,
        REQUEST_PARTIALLY_FULFILLED,
    },
    REQUEST_APPROVED: {
        REQUEST_REJECTED,
        REQUEST_FULFILLED,
        REQUEST_PARTIALLY_FULFILLED,
    },
    REQUEST_PARTIALLY_FULFILLED: {REQUEST_FULFILLED, REQUEST_PARTIALLY_FULFILLED},
}

# Live stock listings are cached under versioned keys in the key-value store
LIVE_STOCK_CACHE_PREFIX = "live-stock"

PERMIT_STATUSES = ("pending", "under_review", "approved", "rejected")
TERMINAL_PERMIT_STATUSES = {"approved", "rejected"}

# Transitions the review screens are expected to produce. The store accepts any
# status write; anything outside this map is logged (or refused in strict mode).
PERMIT_TRANSITIONS = {
    "pending": {"under_review", "approved", "rejected"},
    "under_review": {"pending", "approved", "rejected"},
    "approved": set(),
    "rejected": {"pending"},
}

DOCUMENT_STATUSES = ("pending", "approved", "rejected")
PAYMENT_STATUSES = ("pending", "completed", "failed")
NOTIFICATION_TYPES = ("permit_ready", "payment_required", "general", "application_rejected")

PROFILE_ROLES = ("admin", "citizen", "client", "staff")
REVIEWER_ROLES = ("admin", "staff")

PERMIT_KINDS = ("building", "business", "motorela", "generic")

# Key under ``permit.details`` carrying each normalized subtype payload.
DETAILS_KEYS = {
    "building": "building_permit",
    "business": "business_permit",
    "motorela": "motorela",
}

DEFAULT_PERMIT_TYPES = [
    {
        "slug": "building-permit",
        "title": "Building Permit",
        "kind": "building",
        "description": "New construction, renovation, or structural alteration.",
    },
    {
        "slug": "business-permit",
        "title": "Business Permit",
        "kind": "business",
        "description": "Mayor's permit to operate a business establishment.",
    },
    {
        "slug": "motorela-permit",
        "title": "Motorela Permit",
        "kind": "motorela",
        "description": "Franchise to operate a motorela on a registered route.",
    },
    {
        "slug": "barangay-clearance",
        "title": "Barangay Clearance",
        "kind": "generic",
        "description": "General clearance issued by the barangay.",
    },
]

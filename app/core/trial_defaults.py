from typing import Dict, Tuple

# Defaults for a freshly provisioned project's trial_settings row
DEFAULT_PROJECT_NAME = "My SaaS"
DEFAULT_TRIAL_SETTINGS: Dict[str, object] = {
    "trial_length_days": 14,
    "inactivity_days_nudge1": 2,
    "inactivity_days_nudge2": 4,
    "inactivity_days_nudge3": 7,
    "app_url": "https://your-saas-app.com",
    "automation_enabled": True,
}

# Fallbacks used when rendering nudge emails for a project with blank settings
FALLBACK_PRODUCT_NAME = "your product"
FALLBACK_SUPPORT_EMAIL = "founder@example.com"
FALLBACK_APP_URL = "https://your-saas-app.com/dashboard"

# Nudge kinds, most urgent first. The sweep walks this order and sends at most one.
NUDGE_KINDS: Tuple[str, ...] = ("nudge3", "nudge2", "nudge1")
NUDGE_THRESHOLD_FIELDS: Dict[str, str] = {
    "nudge1": "inactivity_days_nudge1",
    "nudge2": "inactivity_days_nudge2",
    "nudge3": "inactivity_days_nudge3",
}

# Settings fields accept whole days in this range
MIN_DAYS = 1
MAX_DAYS = 365

# Billing
BILLING_ACTIVE = "active"
BILLING_INACTIVE = "inactive"
BILLING_CANCELLED = "cancelled"
EARLY_BIRD_PLAN = "early_bird_19"

# API keys look like tr_<24 hex chars>
API_KEY_PREFIX = "tr_"
API_KEY_LENGTH = 24

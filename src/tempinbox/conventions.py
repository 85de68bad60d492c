"""tempinbox Conventions - IMMUTABLE

Canonical names, paths, and fixed thresholds that every tempinbox
component agrees on. These values are NOT configurable.

Things that CAN be configured (via config.yaml):
- the backend API URL
- the session lifetime and polling cadence
- whether inboxes are provisioned automatically

Things that CANNOT be configured (defined HERE):
- filenames and the directory layout under ~/.tempinbox/
- the severity tier thresholds used for the countdown badge
- user-facing notification texts
"""

# --- The Root ---
# Everything lives under this directory. config.yaml lives here.
TEMPINBOX_HOME = "~/.tempinbox"

# --- Configuration ---
CONFIG_FILENAME = "config.yaml"
# Full path: ~/.tempinbox/config.yaml

# --- Logging ---
LOG_FILENAME = "tempinbox.log"
# Full path: ~/.tempinbox/tempinbox.log

# --- Backend ---
DEFAULT_API_BASE_URL = "https://api.mail.tm"
DEFAULT_REQUEST_TIMEOUT = 30.0

# --- Session lifetime ---
DEFAULT_SESSION_LIFETIME_SECONDS = 3600  # 1 hour
TICK_INTERVAL_SECONDS = 1.0
DEFAULT_POLL_INTERVAL_SECONDS = 10

# --- Countdown severity tiers (display only) ---
TIER_HIGH_ABOVE_SECONDS = 1800  # > 30 minutes
TIER_MEDIUM_ABOVE_SECONDS = 600  # > 10 minutes

# --- Server ---
SERVER_DEFAULT_HOST = "127.0.0.1"
SERVER_DEFAULT_PORT = 8410

# --- Notification texts ---
EXPIRED_NOTICE = "Your inbox has been deleted (timer expired)."
EXPIRED_BANNER = "This inbox has expired. Please create a new one."
COPY_SUCCESS_NOTICE = "Copied to clipboard"
COPY_FAILURE_NOTICE = "Failed to copy to clipboard"

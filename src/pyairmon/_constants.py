"""Internal constants shared across the library."""

DEFAULT_TOPIC_ROOT = "airmonitor"
DEFAULT_MQTT_PORT = 1883

# Poll intervals (seconds) observed for the two indicator variants.
MULTI_DEVICE_POLL_INTERVAL = 60.0
SINGLE_DEVICE_POLL_INTERVAL = 30.0

# ------------------------------------------------------------------
# Remote interface names
# ------------------------------------------------------------------

METHOD_GET_DEVICES = "GetDevices"
METHOD_GET_SELECTED_DEVICE = "GetSelectedDevice"
METHOD_REFRESH_DEVICES = "RefreshDevices"
METHOD_GET_PINNED_METRICS = "GetPinnedMetrics"
METHOD_SET_PINNED_METRIC = "SetPinnedMetric"
METHOD_GET_VISIBILITY = "GetVisibility"
METHOD_OPEN_APP = "OpenApp"
METHOD_OPEN_SETTINGS = "OpenSettings"
METHOD_QUIT = "Quit"

SIGNAL_DEVICES_UPDATED = "DevicesUpdated"
SIGNAL_PINNED_METRICS_CHANGED = "PinnedMetricsChanged"
SIGNAL_DEVICE_UPDATED = "DeviceUpdated"
SIGNAL_VISIBILITY_CHANGED = "VisibilityChanged"

# ------------------------------------------------------------------
# Presentation text
# ------------------------------------------------------------------

SUMMARY_PENDING = "..."
SUMMARY_ERROR = "!"
VALUE_MISSING = "N/A"
NO_DEVICES_TEXT = "No devices found"
NO_SELECTION_TEXT = "No device selected"
LAST_UPDATED_FORMAT = "Last updated %Y-%m-%d %H:%M UTC"
SERVICE_UNAVAILABLE_TEXT = "service not available"
CONNECTION_FAILED_TEXT = "connection failed"

# ------------------------------------------------------------------
# Air score severity thresholds: [0, 30) severe, [30, 75) moderate, >= 75 good
# ------------------------------------------------------------------

SCORE_SEVERE_BELOW = 30.0
SCORE_GOOD_FROM = 75.0

"""Internal constants shared across the library."""

TWILIO_BASE_URL = "https://api.twilio.com"
TWILIO_MESSAGES_PATH = "/2010-04-01/Accounts/{account_sid}/Messages.json"
USER_AGENT = "fuelquota/1"

# ------------------------------------------------------------------
# Monthly allowances (liters)
# ------------------------------------------------------------------

PETROL_CAR_QUOTA = 60.0
PETROL_LARGE_ENGINE_BONUS = 20.0
PETROL_LARGE_ENGINE_CC = 1800.0
PETROL_MOTORCYCLE_QUOTA = 20.0
PETROL_THREE_WHEELER_QUOTA = 40.0
DIESEL_CAR_QUOTA = 80.0
DIESEL_COMMERCIAL_QUOTA = 200.0

# ------------------------------------------------------------------
# Warning thresholds (% of allocated)
# ------------------------------------------------------------------

LOW_THRESHOLD_PCT = 20.0
CRITICAL_THRESHOLD_PCT = 10.0

DEFAULT_TIME_ZONE = "Asia/Colombo"
DEFAULT_EXPIRING_SOON_DAYS = 3
DEFAULT_MAX_DISPENSE_LITERS = 100.0
DEFAULT_SWEEP_CONCURRENCY = 8

"""Internal constants shared across the library."""

# Maximum number of positions kept in a device trail.
TRAIL_MAX_LEN = 100

# ------------------------------------------------------------------
# Demo feed defaults
# ------------------------------------------------------------------

DEFAULT_FEED_INTERVAL_S = 2.0
DEFAULT_SEED = 42
# Uniform offset per axis, roughly 100-300 m of displacement.
DEFAULT_JITTER_DEGREES = 0.0015
DEFAULT_SOS_PROBABILITY = 0.05

# (device id, display name, phone, latitude, longitude)
DEMO_DEVICES: tuple[tuple[str, str, str, float, float], ...] = (
    ("860000000000001", "Daughter", "+27115551234", -26.2041, 28.0473),  # Johannesburg
    ("860000000000002", "Son", "+27215551234", -33.9249, 18.4241),  # Cape Town
)

# ------------------------------------------------------------------
# MQTT defaults
# ------------------------------------------------------------------

DEFAULT_MQTT_PORT = 1883
DEFAULT_MQTT_TOPIC = "ev04/+/update"
DEFAULT_MQTT_KEEPALIVE = 60

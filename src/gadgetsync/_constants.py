"""Internal constants shared across the library."""

ACTION_USB_STATE = "android.hardware.usb.action.USB_STATE"
ACTION_BOOT_COMPLETED = "android.intent.action.BOOT_COMPLETED"

EXTRA_USB_CONNECTED = "connected"
EXTRA_USB_CONFIGURED = "configured"
EXTRA_USB_DATA_UNLOCKED = "unlocked"
EXTRA_USB_FUNCTION_MASS_STORAGE = "mass_storage"

PROPERTY_SYNC_ENABLE = "light.sync.enable"
PROPERTY_SYNC_LINGER = "light.sync.linger"

# ------------------------------------------------------------------
# Shutdown linger  (milliseconds)
# ------------------------------------------------------------------

# The receiving process may be reaped a few seconds after the last
# broadcast, so the upper bound stays well below that.  Anything above
# ~400ms is only useful for lab testing.
MAX_LINGER_MS = 2000
DEFAULT_LINGER_MS = 400

from typing import Literal

__all__ = [
    "API_BASE_URL",
    "BUNDLE_SIZE_WARNING_BYTES",
    "CERT_MAX_AGE_DAYS",
    "COMPATIBILITY_DATES_URL",
    "CONTENT_TYPES",
    "HIDDEN_VAR",
    "MODULE_TYPES",
    "ModuleType",
    "QUEUE_NOT_FOUND_CODE",
]

# Cloudflare
API_BASE_URL = "https://api.cloudflare.com/client/v4"
COMPATIBILITY_DATES_URL = "https://developers.cloudflare.com/workers/platform/compatibility-dates"
QUEUE_NOT_FOUND_CODE = 11000

# Module Types
ModuleType = Literal["esm", "commonjs", "compiled-wasm", "text", "buffer", "python"]
MODULE_TYPES: set[ModuleType] = {"esm", "commonjs", "compiled-wasm", "text", "buffer", "python"}

# Defaults
CERT_MAX_AGE_DAYS = 30
BUNDLE_SIZE_WARNING_BYTES = 1024 * 1024
HIDDEN_VAR = "(hidden)"

CONTENT_TYPES: dict[ModuleType, str] = {
    "esm": "application/javascript+module",
    "commonjs": "application/javascript",
    "compiled-wasm": "application/wasm",
    "text": "text/plain",
    "buffer": "application/octet-stream",
    "python": "text/x-python",
}

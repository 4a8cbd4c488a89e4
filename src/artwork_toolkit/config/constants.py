"""
System constants that should never change.

These are technical/system limits, not user preferences.
User-configurable values should go in config.yaml instead.
"""

# Logging
VERBOSE_LOGGING_THRESHOLD = 2  # -vv switches to debug output with logger names

# Library runner
DEFAULT_WORKERS = 4  # Concurrent entry passes when nothing is configured
ERROR_MESSAGE_TRUNCATE_LENGTH = 100  # Maximum length for error message display

# Remote downloads
HTTP_NOT_FOUND_CODES = (403, 404)  # Bad provider urls, skipped quietly
DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"  # Used when neither header nor url gives a type

# Catalog file
CATALOG_FORMAT_VERSION = 1

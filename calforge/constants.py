"""Wire-format constants for the calforge library."""

# Line handling
CRLF = "\r\n"
FOLD_WIDTH = 75  # octets per physical line, continuation space included
FOLD_CHARS = (" ", "\t")

# Component envelopes
BEGIN = "BEGIN"
END = "END"
EXTENSION_PREFIX = "X-"

# Free-text escaping, applied in this order
ESCAPES = (
    (";", "\\;"),
    (",", "\\,"),
    ("\n", "\\n"),
)

# Parameter values holding any of these must be quoted
PARAM_QUOTE_CHARS = (":", ";", ",")

# Date and time formats
DATE_FORMAT = "%Y%m%d"
FLOATING_FORMAT = "%Y%m%dT%H%M%S"
UTC_FORMAT = "%Y%m%dT%H%M%SZ"

"""Shared search constants."""

# Header carrying the current member id (0 / absent = anonymous)
MEMBER_ID_HEADER = "X-Member-Id"
ANONYMOUS_MEMBER_ID = 0

# Autocomplete does not suggest below this many characters
MIN_SUGGEST_TERM_LENGTH = 2

# Query-string prefix for structured filters: ?f.model=ABC&f.category=1&f.category=3
FILTER_PARAM_PREFIX = "f."

# Logged query text is cut to the search_logs.query column width
MAX_LOGGED_QUERY_LENGTH = 255

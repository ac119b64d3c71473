"""
Naming and wire constants shared by the compiler, detector and reverse channel.
"""

# Prefix of every procedure created by pgproxy
PROCEDURE_PREFIX = "pgproxy_"

# Schema used when none is configured
DEFAULT_SCHEMA = "public"

# Dollar-quote tag delimiting the procedure body
BODY_MARKER = "$BODY$"

# Notification channel carrying reverse calls
NOTIFY_CHANNEL = "pgproxy"

# The only action a reverse call payload may carry
CALL_ACTION = "call"

"""
core/models.py -- Domain constants shared by every layer.

The web forms, the auth API models and the auth library all validate the same
shapes; they import the rules from here rather than redefining them.
"""

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Basic email shape: local part, "@", dotted domain with an alphabetic TLD.
# Leading dots and consecutive dots in the local part are rejected.
EMAIL_PATTERN = r"^(?!\.)(?!.*\.\.)[A-Za-z0-9_'+\-\.]*[A-Za-z0-9_+\-]@([A-Za-z0-9][A-Za-z0-9\-]*\.)+[A-Za-z]{2,}$"

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

# provider_id used for email/password accounts in the accounts table.
CREDENTIAL_PROVIDER = "credential"

# Social providers rendered on the auth pages, in display order.
SOCIAL_PROVIDERS: dict[str, str] = {
    "google": "Google",
    "github": "GitHub",
}

SESSION_COOKIE = "session_token"

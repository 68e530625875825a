from typing import List, Tuple

UNKNOWN_PROVIDER = "Custom/Unknown"

# (label, substrings, require_all). Checked in order, first match wins.
# "sg" and "pm" are short enough to hit unrelated hosts (e.g. "smtp.msg.example",
# "mx.pmta.example"); kept because existing reports depend on the labels.
PROVIDER_TABLE: List[Tuple[str, Tuple[str, ...], bool]] = [
    ("Google Workspace", ("google", "gmail"), False),
    ("Microsoft 365", ("outlook", "office365", "microsoft"), False),
    ("Zoho Mail", ("zoho",), False),
    ("Yahoo Mail", ("yahoo",), False),
    ("Amazon SES", ("amazonaws", "amazon"), False),
    ("SendGrid", ("sendgrid", "sg"), False),
    ("Mailchimp/Mandrill", ("mailchimp", "mandrill"), False),
    ("Cloudflare Email Routing", ("mx", "cloudflare"), True),
    ("ProtonMail", ("protonmail", "pm"), False),
]


def identify_provider(exchange: str) -> str:
    """Map an MX exchange hostname to a mailbox-provider label."""
    hostname = exchange.lower()
    for label, needles, require_all in PROVIDER_TABLE:
        hits = [n in hostname for n in needles]
        if all(hits) if require_all else any(hits):
            return label
    return UNKNOWN_PROVIDER

"""Display helpers shared by the core's logs and the presentation layers."""


def mask_contact(contact: str) -> str:
    """
    Hide most of a contact identifier.

    Examples:
        mask_contact("john.doe@example.com") -> "jo***@example.com"
        mask_contact("+15551234567") -> "***4567"
    """
    if not contact:
        return ""

    if "@" in contact:
        username, _, domain = contact.partition("@")
        return f"{username[:2]}***@{domain}"

    return f"***{contact[-4:]}"


def format_countdown(seconds: int) -> str:
    """Format remaining seconds as M:SS, e.g. 75 -> "1:15"."""
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins}:{secs:02d}"

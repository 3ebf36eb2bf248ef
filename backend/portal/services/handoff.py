"""Post-submission handoff to the external messaging service."""

from urllib.parse import quote

from portal.config import HANDOFF_PHONE, HANDOFF_MESSAGE


def build_handoff_url(phone: str = None, message: str = None) -> str:
    """WhatsApp click-to-chat link: https://wa.me/<digits>?text=<url-encoded message>."""
    phone = "".join(ch for ch in (phone or HANDOFF_PHONE) if ch.isdigit())
    message = HANDOFF_MESSAGE if message is None else message
    return "https://wa.me/{}?text={}".format(phone, quote(message, safe=""))

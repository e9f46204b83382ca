from __future__ import annotations

import re
from urllib.parse import quote


def normalize_phone(phone: str) -> str:
    """Keep a leading + and digits only."""
    raw = (phone or "").strip()
    digits = re.sub(r"\D", "", raw)
    if not digits:
        return ""
    return f"+{digits}" if raw.startswith("+") else digits


def tel_uri(phone: str) -> str:
    return f"tel:{normalize_phone(phone)}"


def whatsapp_link(phone: str, text: str | None = None) -> str:
    digits = re.sub(r"\D", "", phone or "")
    link = f"https://wa.me/{digits}"
    if text:
        link += f"?text={quote(text, safe='')}"
    return link

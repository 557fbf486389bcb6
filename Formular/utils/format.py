# -*- coding: utf-8 -*-
"""discord format functions"""


def bold(text):
    """discord format for bold text"""
    return f"**{text}**"


def pagify(text, delims=None, page_length=2000):
    """Split ``text`` into chunks of at most ``page_length``, preferring to cut at ``delims``.

    Does not respect markdown code blocks.
    """
    if delims is None:
        delims = ["\n"]
    remaining = text

    while len(remaining) > page_length:
        cut = max(remaining.rfind(d, 0, page_length) for d in delims)
        # a delimiter at 0 would yield an empty page forever
        if cut <= 0:
            cut = page_length
        yield remaining[:cut]
        remaining = remaining[cut:]

    yield remaining


def style_list(entries) -> str:
    """Render ``(name, value)`` pairs as a markdown bullet list, skipping empty values."""
    return "\n".join(f"- {bold(name)}: {value}" for name, value in entries if value not in (None, ""))

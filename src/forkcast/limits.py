# limits.py
#
# Message length is measured in UTF-16 code units, the unit browsers count,
# so a character outside the Basic Multilingual Plane (most emoji) counts twice.

MAX_MESSAGE_UNITS = 4000


def utf16_len(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2

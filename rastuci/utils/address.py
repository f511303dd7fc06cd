import re
from dataclasses import dataclass

_STREET_RE = re.compile(r"^(.+?)\s+(\d+)")
_POSTAL_RE = re.compile(r"\b(\d{4})\b")

DEFAULT_POSTAL_CODE = "1611"
DEFAULT_CITY = "Buenos Aires"


@dataclass
class ParsedAddress:
    street_name: str
    street_number: str
    city: str
    postal_code: str
    province_code: str


def province_code_for(postal_code: str) -> str:
    """CABA postal codes (1000-1439) map to ``C``, everything else to Buenos Aires ``B``."""
    try:
        cp = int(postal_code)
    except (TypeError, ValueError):
        return "B"
    return "C" if 1000 <= cp <= 1439 else "B"


def parse_address(text: str) -> ParsedAddress:
    """Best-effort split of a free-text address like
    ``"Av. Rivadavia 1234, CABA, 1406"``.
    """
    text = text or ""
    parts = [p.strip() for p in text.split(",")]
    street_part = parts[0] if parts else ""

    m = _STREET_RE.match(street_part)
    if m:
        street_name, street_number = m.group(1).strip(), m.group(2)
    else:
        street_name, street_number = street_part, "S/N"

    if len(parts) > 3 and parts[3]:
        city = parts[3]
    elif len(parts) > 1 and parts[1]:
        city = parts[1]
    else:
        city = DEFAULT_CITY

    # street numbers are often 4 digits too, so only look past the first part
    pm = _POSTAL_RE.search(", ".join(parts[1:]))
    postal_code = pm.group(1) if pm else DEFAULT_POSTAL_CODE

    return ParsedAddress(
        street_name=street_name,
        street_number=street_number,
        city=city,
        postal_code=postal_code,
        province_code=province_code_for(postal_code),
    )

"""Normalization utilities shared by the extraction, filtering and grouping stages.

Covers:
  - Date parsing (12+ format variants, ISO fallback) and month labels
  - Amount coercion for loosely-typed JSON values
  - Description normalisation and chart-label cleanup
"""

import re
from datetime import datetime
from typing import Any, Optional

# ─────────────────────────────────────────────────────────────────────────────
# Date parsing
# ─────────────────────────────────────────────────────────────────────────────

_DATE_FORMATS = [
    "%Y-%m-%d",             # 2026-01-15
    "%m/%d/%Y",             # 01/15/2026
    "%d/%m/%Y",             # 15/01/2026
    "%m-%d-%Y",             # 01-15-2026
    "%d-%m-%Y",             # 15-01-2026
    "%Y/%m/%d",             # 2026/01/15
    "%m/%d/%y",             # 01/15/26
    "%d-%b-%Y",             # 15-Jan-2026
    "%d %b %Y",             # 15 Jan 2026
    "%b %d, %Y",            # Jan 15, 2026
    "%B %d, %Y",            # January 15, 2026
    "%Y-%m-%dT%H:%M:%S",    # 2026-01-15T12:00:00
    "%Y-%m-%dT%H:%M:%S.%f", # 2026-01-15T12:00:00.000000
]


def to_datetime(value: str) -> Optional[datetime]:
    """Parse a date string in any known format; ``None`` when nothing fits."""
    v = value.strip()
    if not v:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(v, fmt)
        except ValueError:
            continue
    try:
        # 2026-01-15T12:00:00Z, 2026-01-15T12:00:00+02:00 …
        return datetime.fromisoformat(v.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_date(value: str) -> str:
    """Return ISO date string YYYY-MM-DD; falls back to the raw value."""
    dt = to_datetime(value)
    return dt.strftime("%Y-%m-%d") if dt else value.strip()


def month_label(value: str) -> Optional[str]:
    """``"2025-01-14"`` → ``"Jan 2025"``; ``None`` for unparseable dates."""
    dt = to_datetime(value)
    return dt.strftime("%b %Y") if dt else None


# ─────────────────────────────────────────────────────────────────────────────
# Amount parsing
# ─────────────────────────────────────────────────────────────────────────────

# Matches European thousands separator: 1.234,56
_EUROPEAN_RE = re.compile(r"^-?\d{1,3}(\.\d{3})*(,\d{1,2})$")


def parse_amount(value: str) -> float:
    """Parse a single amount string.

    Handles:
      42.99  |  -42.99  |  (42.99)  |  $1,234.56
      £1.234,56 (European)  |  1 234.56 (space thousands)
    """
    v = value.strip()
    if not v:
        raise ValueError("empty amount string")

    negative = v.startswith("(") and v.endswith(")")
    if negative:
        v = v[1:-1]

    v = v.lstrip("$€£¥₹").strip()
    v = v.replace(" ", "")

    if _EUROPEAN_RE.match(v):
        v = v.replace(".", "").replace(",", ".")
    else:
        v = re.sub(r",(?=\d{3}(?:[,.]|$))", "", v)
        v = v.replace(",", ".")

    amount = float(v)
    return -amount if negative else amount


def coerce_amount(value: Any) -> Optional[float]:
    """Best-effort numeric coercion for an ``amount`` JSON value.

    Numbers pass through, numeric strings go through :func:`parse_amount`,
    everything else (bools, objects, garbage strings) becomes ``None``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return parse_amount(value)
        except ValueError:
            return None
    return None


# ─────────────────────────────────────────────────────────────────────────────
# Descriptions and labels
# ─────────────────────────────────────────────────────────────────────────────

MAX_LABEL_LEN = 22

# Phrases banks prepend that carry no merchant signal
_BOILERPLATE_RE = re.compile(
    r"\b(?:"
    r"payment (?:to|from)|"
    r"transfer (?:to|from)|"
    r"purchase at|"
    r"pos purchase|"
    r"card payment|"
    r"online payment|"
    r"direct debit"
    r")\b",
    re.IGNORECASE,
)

_LEGAL_SUFFIX_RE = re.compile(
    r"[,\s]+(?:inc|llc|ltd|corp|co|plc|gmbh)\.?(?=\s|$)",
    re.IGNORECASE,
)

_DATE_LABEL_RE = re.compile(r"^(?:\d{4}-\d{2}(?:-\d{2})?|\d{1,2}/\d{1,2}/\d{2,4})")
_MONTH_LABEL_RE = re.compile(r"^[A-Z][a-z]{2} \d{4}$")


def normalize_description(raw: str) -> str:
    """Lowercase + collapsed whitespace; the identity used for recurring detection."""
    return re.sub(r"\s+", " ", raw.lower().strip())


def clean_description_label(raw: str) -> str:
    """Turn a raw description into a short chart label.

    Examples
    --------
    "Payment to Netflix Inc."              → "Netflix"
    "Direct debit  Acme Utilities LLC"     → "Acme Utilities"
    "Amazon Marketplace Order 112-339"     → "Amazon Marketplace Ord..."
    """
    s = _BOILERPLATE_RE.sub(" ", raw)
    s = _LEGAL_SUFFIX_RE.sub("", s)
    s = re.sub(r"\s+", " ", s).strip(" -–,")
    if len(s) > MAX_LABEL_LEN:
        s = s[:MAX_LABEL_LEN] + "..."
    return s


def is_date_like_label(label: str) -> bool:
    return bool(_DATE_LABEL_RE.match(label) or _MONTH_LABEL_RE.match(label))


def capitalize_label(label: str) -> str:
    """Upper-case the first letter of every word; date/month labels pass through."""
    if is_date_like_label(label):
        return label
    return " ".join(w[:1].upper() + w[1:] for w in label.split(" "))

import re
import secrets
import string
from typing import Any, Callable, Iterable, Optional

from ..logging import get_logger

_LOG = get_logger("normalize")

_ID_ALPHABET = string.ascii_lowercase + string.digits
_CODE_ALPHABET = string.ascii_uppercase + string.digits

ID_LENGTH = 9
STORE_CODE_LENGTH = 6


def normalize_email(value: Any) -> str:
    """Lower-case and trim an e-mail; non-strings normalize to ''."""
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def normalize_code(value: Any) -> str:
    """Upper-case a storefront code and drop everything but A-Z/0-9."""
    if not isinstance(value, str):
        return ""
    return re.sub(r"[^A-Z0-9]", "", value.strip().upper())


def slugify(name: str) -> str:
    """'Delícias da Casa' -> 'delícias-da-casa' (word chars and dashes only)."""
    s = (name or "").strip().lower()
    s = re.sub(r"\s+", "-", s)
    return re.sub(r"[^\w-]", "", s)


def generate_id(length: int = ID_LENGTH) -> str:
    """Random lower-case base36 token used for record ids."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def generate_store_code(
    existing: Iterable[str] = (),
    *,
    length: int = STORE_CODE_LENGTH,
    choice: Optional[Callable[[str], str]] = None,
) -> str:
    """Return a fresh upper-case code not present in `existing` (case-insensitive)."""
    pick = choice or secrets.choice
    taken = {normalize_code(c) for c in existing if c}
    while True:
        code = "".join(pick(_CODE_ALPHABET) for _ in range(length))
        if code not in taken:
            return code
        _LOG.debug(f"Store code collision on {code}; drawing again")


def normalize_price(value: Any) -> Optional[float]:
    """Parse '24,90' / '24.90' / 24.9 into a non-negative float, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        s = str(value).strip().replace(" ", "")
        if not s:
            return None
        if "," in s and "." in s:
            if s.rfind(",") > s.rfind("."):
                s = s.replace(".", "").replace(",", ".")
            else:
                s = s.replace(",", "")
        else:
            s = s.replace(",", ".")
        try:
            num = float(s)
        except ValueError:
            return None
    if num != num or num < 0:
        return None
    return round(num, 2)

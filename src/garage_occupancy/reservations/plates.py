"""License plate normalization and validation."""

import re
from typing import Optional

# Two letters followed by five digits, e.g. AB12345
DEFAULT_PLATE_PATTERN = r"^[A-Z]{2}[0-9]{5}$"


def normalize_plate(plate: Optional[str]) -> Optional[str]:
    """Uppercase a plate and strip whitespace; empty input becomes None."""
    if plate is None:
        return None
    normalized = re.sub(r"\s+", "", plate).upper()
    return normalized or None


def is_valid_license_plate(plate: str, pattern: str = DEFAULT_PLATE_PATTERN) -> bool:
    """Check a normalized plate against the configured format."""
    return re.fullmatch(pattern, plate) is not None

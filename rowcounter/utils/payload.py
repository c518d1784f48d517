"""
Extra-payload generation.

The payload column has no meaning to the counter; it exists to make partition
reads and writes heavier so that paging and timeouts can be provoked.
"""

from __future__ import annotations

import random
from typing import Optional


def generate_payload(size: Optional[int], rng: Optional[random.Random] = None) -> Optional[bytes]:
    """
    Return `size` shuffled bytes, or None when `size` is unset or not positive.
    """
    if size is None or size <= 0:
        return None
    rng = rng or random
    values = list(range(size))
    rng.shuffle(values)
    return bytes(v % 256 for v in values)


__all__ = ["generate_payload"]

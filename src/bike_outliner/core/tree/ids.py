"""Node id generation."""

import random
import string
import time
from collections.abc import Container

from loguru import logger

_FIRST_CHARS = string.ascii_letters
_OTHER_CHARS = string.ascii_letters + string.digits
_MAX_ATTEMPTS = 100


def generate_node_id(taken: Container[str], length: int = 4) -> str:
    """Return a short id not present in ``taken``.

    Ids start with a letter so they stay valid XML ``id`` values. After too many
    collisions a long time-based id is returned instead.
    """
    for _ in range(_MAX_ATTEMPTS):
        candidate = random.choice(_FIRST_CHARS) + "".join(
            random.choices(_OTHER_CHARS, k=length - 1)
        )
        if candidate not in taken:
            return candidate

    logger.warning("Could not generate a short unique id, using fallback")
    while True:
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=5))
        candidate = f"gen_{int(time.time() * 1000)}_{suffix}"
        if candidate not in taken:
            return candidate

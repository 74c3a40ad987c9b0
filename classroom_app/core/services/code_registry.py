"""Generation of unique six-character classroom join codes."""

from __future__ import annotations

from collections.abc import Container
import logging
import random

from classroom_app.constants.classroom_constants import CODE_ALPHABET, CODE_LENGTH, CODE_RETRY_LIMIT

logger = logging.getLogger(__name__)

_system_rng = random.SystemRandom()


class CodeSpaceExhausted(Exception):
    """Raised when no free classroom code was found within the retry limit."""


def normalize_code(code: str) -> str:
    return code.strip().upper()


def generate_code(rng: random.Random | None = None) -> str:
    """Draw each character uniformly from ``A-Z0-9``."""
    chooser = rng or _system_rng
    return "".join(chooser.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def allocate_unique_code(
    existing_codes: Container[str],
    rng: random.Random | None = None,
    max_attempts: int = CODE_RETRY_LIMIT,
) -> str:
    """Generate codes until one is absent from ``existing_codes``."""
    for attempt in range(1, max_attempts + 1):
        code = generate_code(rng)
        if code not in existing_codes:
            if attempt > 1:
                logger.debug("Allocated classroom code after %d attempts", attempt)
            return code
    raise CodeSpaceExhausted(f"No unique classroom code found after {max_attempts} attempts.")

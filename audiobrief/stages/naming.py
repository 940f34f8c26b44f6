"""
Stage: Output Naming (NamingEngine)

Responsibilities:
    - Strip the final extension of the original name
    - Sanitize the base name to [A-Za-z0-9_]
    - Expand English and French placeholder tokens against the base name
      and the local date/time
    - Append the lower-cased target extension

Invariants:
    - Total: unknown tokens are left verbatim, never an error
    - Pure for a fixed instant (time is injected)
    - Token strings are mutually non-overlapping; expansion is a single pass,
      so substituted text is never rescanned
"""

import re
from datetime import datetime
from typing import Callable

from audiobrief.models import NamingContext
from audiobrief.utils import local_now


# Token -> component key. Keep the two sets parallel.
ENGLISH_TOKENS = {
    "%text%": "text",
    "%day%": "day",
    "%month%": "month",
    "%year%": "year",
    "%hour%": "hour",
    "%minute%": "minute",
}

FRENCH_TOKENS = {
    "%textNonObligatoire%": "text",
    "%jour%": "day",
    "%mois%": "month",
    "%annee%": "year",
    "%heure%": "hour",
    "%minutes%": "minute",
}

TOKENS = {**ENGLISH_TOKENS, **FRENCH_TOKENS}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]")
_TOKEN_RE = re.compile("|".join(re.escape(t) for t in sorted(TOKENS, key=len, reverse=True)))


def strip_extension(name: str) -> str:
    """Drop everything from the last '.'; a name without '.' is returned whole."""
    dot_index = name.rfind(".")
    return name if dot_index == -1 else name[:dot_index]


def sanitize(base: str) -> str:
    """Replace every character outside [A-Za-z0-9] with '_'."""
    return _UNSAFE_CHARS.sub("_", base)


def build_token_table(ctx: NamingContext) -> dict[str, str]:
    """Map every supported token to its expansion."""
    ts = ctx.timestamp
    components = {
        "text": ctx.sanitized_base_name,
        "day": f"{ts.day:02d}",
        "month": f"{ts.month:02d}",
        "year": f"{ts.year:04d}",
        "hour": f"{ts.hour:02d}",
        "minute": f"{ts.minute:02d}",
    }
    return {token: components[key] for token, key in TOKENS.items()}


def expand_pattern(pattern: str, table: dict[str, str]) -> str:
    """Replace every exact token occurrence in one left-to-right pass."""
    return _TOKEN_RE.sub(lambda m: table[m.group(0)], pattern)


class NamingEngine:
    """
    Output filename generator.

    Args:
        clock: Returns the current local time; injected for testability.
    """

    def __init__(self, clock: Callable[[], datetime] = local_now):
        self.clock = clock

    def context_for(self, original_name: str, now: datetime | None = None) -> NamingContext:
        return NamingContext(
            sanitized_base_name=sanitize(strip_extension(original_name)),
            timestamp=now if now is not None else self.clock(),
        )

    def generate(
        self,
        original_name: str,
        pattern: str,
        extension: str,
        now: datetime | None = None,
    ) -> str:
        """
        Build the output filename.

        Args:
            original_name: Uploaded file name, e.g. "My Report v1.2.wav"
            pattern: Token pattern, e.g. "%jour%-%mois%_%textNonObligatoire%"
            extension: Target extension, any case
            now: Instant to format; defaults to the engine clock

        Returns:
            e.g. "07-03_My_Report_v1_2.mp3"
        """
        ctx = self.context_for(original_name, now)
        name = expand_pattern(pattern, build_token_table(ctx))
        return f"{name}.{extension.lower()}"

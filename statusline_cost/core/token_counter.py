"""
Token counting for usage records.

Holds the four token counts a single model response is billed on.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenUsage:
    """Token counts for one model response.

    Cache writes and cache reads are billed at their own rates, separately
    from plain input tokens.
    """
    input_tokens: int = 0
    output_tokens: int = 0
    cache_write_tokens: int = 0
    cache_read_tokens: int = 0


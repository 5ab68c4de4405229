"""
Token estimation.

Cheap character-based estimate used for admission control and usage
accounting before the provider reports real numbers.
"""

import math

# Reserved for the model's answer when charging a request against the budget
RESPONSE_TOKEN_RESERVE = 512


def estimate_tokens(text: str) -> int:
    """Estimate tokens as roughly one per four characters.

    Returns:
        0 for empty text, otherwise at least 1
    """
    if not text:
        return 0
    return max(1, math.ceil(len(text) / 4))


def estimate_request_tokens(system_prompt: str, message: str) -> int:
    """Tokens charged against the daily budget before calling the provider."""
    return estimate_tokens(system_prompt + message) + RESPONSE_TOKEN_RESERVE

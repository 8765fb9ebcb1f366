"""
Utility helpers for the PediBGA wizard

Small pure functions: identifier generation and model-output cleanup.
"""

import logging
import uuid

logger = logging.getLogger(__name__)


def generate_operation_token(short=True):
    """
    Generate unique operation token for an external round trip

    Args:
        short (bool): If True, return 8-char hex. If False, return full UUID.

    Returns:
        str: Operation token

    Examples:
        >>> generate_operation_token()
        'a3f7e2b9'

        >>> generate_operation_token(short=False)
        'a3f7e2b9c1d2e3f4a5b6c7d8e9f0a1b2'
    """
    full_id = uuid.uuid4().hex
    return full_id[:8] if short else full_id


def repair_json_text(text: str) -> str:
    """
    Attempt to repair common JSON formatting issues in model output

    Only handles dict output (not arrays).

    - Strips markdown code fences
    - Keeps the span between the first '{' and the last '}'
    - Balances braces naively (does not understand braces inside strings)

    Args:
        text: Raw LLM output

    Returns:
        str: Cleaned JSON string (may still fail json.loads)

    Examples:
        >>> repair_json_text('```json\\n{"pH": "7.31"}\\n```')
        '{"pH": "7.31"}'
        >>> repair_json_text('Result: {"pH": "7.31"')
        '{"pH": "7.31"}'
    """
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]

    text = text.strip()

    first_brace = text.find('{')
    if first_brace == -1:
        logger.warning("No opening brace found in JSON repair")
        return text

    last_brace = text.rfind('}')
    if last_brace < first_brace:
        # Truncated output: keep everything after the opening brace
        text = text[first_brace:]
    else:
        text = text[first_brace:last_brace + 1]

    open_count = text.count('{')
    close_count = text.count('}')

    if open_count > close_count:
        missing = open_count - close_count
        text += '}' * missing
        logger.debug(f"Added {missing} closing braces")

    elif close_count > open_count:
        diff = close_count - open_count
        for _ in range(diff):
            last_close = text.rfind('}')
            if last_close != -1:
                text = text[:last_close] + text[last_close + 1:]
        logger.debug(f"Removed {diff} extra closing braces")

    return text

"""
Detection of "could not identify" answers.

The identify endpoint returns the model's free-text answer. When the
model cannot recognise the product it answers with a sentence instead
of a product name; these phrases catch that case.
"""

from typing import Optional

UNIDENTIFIABLE_PHRASES: tuple[str, ...] = (
    "i don't know",
    "i do not know",
    "unable to identify",
    "can't identify",
    "cannot identify",
    "could not identify",
    "couldn't identify",
    "not able to identify",
    "unable to determine",
    "not clear",
    "not visible",
    "unclear",
)


def is_unidentifiable_product(product_name: Optional[str]) -> bool:
    """
    Check whether an identify answer means "no product recognised".

    Args:
        product_name: Raw product string from the identify call

    Returns:
        True for blank answers or answers containing a known phrase

    Example:
        >>> is_unidentifiable_product("I Don't Know")
        True
        >>> is_unidentifiable_product("CeraVe Moisturizing Cream")
        False
    """
    if not product_name or not product_name.strip():
        return True

    lowered = product_name.lower()
    return any(phrase in lowered for phrase in UNIDENTIFIABLE_PHRASES)

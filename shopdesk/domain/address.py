"""Customer address variant.

Older customers carry the address as one free-text line, newer ones as
separate parts. Both render through :func:`format_address`.
"""

from dataclasses import dataclass
from typing import Optional, Union

ADDRESS_NOT_PROVIDED = "Address not provided"


@dataclass(frozen=True)
class PlainAddress:
    text: str


@dataclass(frozen=True)
class StructuredAddress:
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None


Address = Union[PlainAddress, StructuredAddress]


def format_address(address: Optional[Address]) -> str:
    """Render an address as the single line couriers expect.

    Plain text passes through unchanged; structured parts are joined with
    ", " skipping the empty ones.
    """
    if isinstance(address, PlainAddress):
        return address.text
    if isinstance(address, StructuredAddress):
        parts = [p for p in (address.street, address.city, address.state, address.zip_code) if p]
        return ", ".join(parts) or ADDRESS_NOT_PROVIDED
    return ADDRESS_NOT_PROVIDED

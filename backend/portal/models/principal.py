"""Authenticated principal issued by the identity provider."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    """Read-only identity of a signed-in person.

    Attributes:
        id: Stable unique id from the identity provider.
        email: Email address the provider verified.
        display_name: Name to show in the UI, may be empty.
    """

    id: str
    email: str
    display_name: str = ""

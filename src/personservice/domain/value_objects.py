"""Module including value objects used across the domain layer."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Person:
    """Value object representing a person by first name and surname."""

    firstname: str
    surname: str

    @property
    def full_name(self) -> str:
        """First name and surname separated by a single space."""
        return f"{self.firstname} {self.surname}"

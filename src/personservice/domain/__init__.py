"""Domain layer for personService.

Contains the value objects the service works with. This package is
deliberately technology-agnostic.

Dependency rule: do not import from `personservice.bootstrap` or
`personservice.entrypoints`.
"""

from .value_objects import Person

__all__ = ["Person"]

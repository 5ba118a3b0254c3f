"""Bootstrap (composition root) for personService.

Assembles the application at runtime: builds the configuration environment from
process arguments, environment variables and properties files, configures
logging from it, and hands entrypoints a running `AppContainer`.

Import rules:
- Entry points import *this* package (not the wiring helpers directly).
- This package may import: `personservice.config`, `personservice.logging` and
  `personservice.domain`.
- Inner layers must not import `personservice.bootstrap`.

Public surface:
- Re-export composition factories from this module; keep wiring helpers internal.
- No business rules live here; this is assembly and lifecycle only.
"""

from .bootstrap import AppContainer, ContainerState, bootstrap

__all__ = ["AppContainer", "ContainerState", "bootstrap"]

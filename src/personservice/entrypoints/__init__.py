"""Entrypoints (inbound adapters) for personService.

Expose the application to the outside world: the start-up routine and the
console command that runs it.

Dependency rule: may import `personservice.bootstrap` and
`personservice.domain`.
"""

"""personService

Start-up entrypoint for the person service. Bootstraps the runtime
environment (configuration and logging), creates a demonstration `Person`
and reports both through the application log.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"

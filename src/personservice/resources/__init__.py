"""Packaged default configuration (``application.properties``)."""

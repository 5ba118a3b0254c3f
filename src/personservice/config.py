"""Configuration environment for personService.

This module builds the key-value `Environment` the rest of the application reads
its settings from. Properties come from several sources, highest priority first:

1. command-line arguments (``--name=value``),
2. process environment variables, with relaxed names (``INFO_APP_NAME`` answers
   for ``info.app.name``),
3. profile-specific ``application-<profile>.properties`` files,
4. ``application.properties`` files found in ``./config/``, ``./`` and the
   packaged defaults.

Looking up a key nobody defines is not an error; it yields the default.

Typed settings (booleans, integers, paths) are declared as pydantic-settings
models deriving from `PersonServiceSettings`. Their fields are the relaxed form
of the property names (``logging.flight-recorder.capacity`` is the field
``logging_flight_recorder_capacity``) and are fed from the same sources in the
same order.
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from importlib.resources import files
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    EnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

PROPERTIES_FILE_NAME = "application"  # pragma: no mutate
PROPERTIES_FILE_SUFFIX = ".properties"  # pragma: no mutate
COMMAND_LINE_SOURCE_NAME = "commandLineArgs"  # pragma: no mutate
ENVIRONMENT_SOURCE_NAME = "systemEnvironment"  # pragma: no mutate

_PLACEHOLDER_RE = re.compile(r"\$\{([^${}]+)\}")


# ============================================================================
#                                   Errors
# ============================================================================


class ConfigurationError(Exception):
    """Base class for errors raised while building or reading the environment."""


class InvalidArgumentError(ConfigurationError):
    """Raised when a command-line argument is not of the form ``--name[=value]``."""

    def __init__(self, argument: str) -> None:
        super().__init__(f"Invalid argument syntax: {argument!r}")
        self.argument = argument


class ConfigFileNotFoundError(ConfigurationError):
    """Raised when an explicitly requested configuration location does not exist."""

    def __init__(self, location: str) -> None:
        super().__init__(f"Config location {location!r} does not exist.")
        self.location = location


class PropertiesFileError(ConfigurationError):
    """Raised when a properties file contains a malformed line."""

    def __init__(self, path: str, lineno: int, line: str) -> None:
        super().__init__(f"{path}:{lineno}: property has an empty key: {line!r}")
        self.path = path
        self.lineno = lineno
        self.line = line


class PlaceholderResolutionError(ConfigurationError):
    """Raised when ``${...}`` placeholders reference each other in a cycle."""

    def __init__(self, key: str, chain: Sequence[str]) -> None:
        super().__init__(
            f"Circular placeholder reference for {key!r}: {' -> '.join(chain)}"
        )
        self.key = key
        self.chain = tuple(chain)


class InvalidSettingsError(ConfigurationError):
    """Raised when properties do not validate against a settings model."""

    def __init__(self, settings_name: str, error: ValidationError) -> None:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in error.errors()
        )
        super().__init__(f"Invalid {settings_name}: {problems}")
        self.settings_name = settings_name
        self.errors = error.errors()


# ============================================================================
#                             Property sources
# ============================================================================


@dataclass(frozen=True)
class PropertySource:
    """A named, read-only mapping of property names to string values."""

    name: str
    properties: Mapping[str, str]

    def get(self, key: str) -> str | None:
        """Return the raw value for *key*, or None when this source lacks it."""
        return self.properties.get(key)

    def names(self) -> Iterable[str]:
        """Return the property names this source defines."""
        return self.properties.keys()


class EnvironmentVariablesPropertySource(PropertySource):
    """Property source over process environment variables with relaxed names.

    ``info.app.name`` is looked up as-is first, then as ``INFO_APP_NAME``.
    Enumerated names are reported in the dotted lower-case form.
    """

    def get(self, key: str) -> str | None:
        if (value := self.properties.get(key)) is not None:
            return value
        return self.properties.get(to_environment_variable_name(key))

    def names(self) -> Iterable[str]:
        return [name.lower().replace("_", ".") for name in self.properties]


def to_environment_variable_name(key: str) -> str:
    """Return the environment variable spelling of a property name.

    Examples:
        ```py
        >>> to_environment_variable_name("logging.flight-recorder.capacity")
        'LOGGING_FLIGHT_RECORDER_CAPACITY'
        ```
    """
    return re.sub(r"[.\-]", "_", key).upper()


# ============================================================================
#                            Command-line arguments
# ============================================================================


@dataclass(frozen=True)
class ApplicationArguments:
    """Process arguments split into option properties and non-option values."""

    source_args: tuple[str, ...]
    options: Mapping[str, str] = field(default_factory=dict)
    non_option_args: tuple[str, ...] = ()


def parse_arguments(args: Sequence[str]) -> ApplicationArguments:
    """Split process arguments into ``--name=value`` options and the rest.

    A bare ``--name`` is recorded as ``"true"``. When an option is repeated, the
    values are joined with commas.

    Args:
        args: Raw process arguments (without the program name).

    Returns:
        ApplicationArguments: The parsed arguments.

    Raises:
        InvalidArgumentError: For ``--`` alone or an option with an empty name.
    """
    options: dict[str, str] = {}
    non_option_args: list[str] = []
    for arg in args:
        if not arg.startswith("--"):
            non_option_args.append(arg)
            continue
        name, sep, value = arg[2:].partition("=")
        name = name.strip()
        if not name:
            raise InvalidArgumentError(arg)
        if not sep:
            value = "true"
        options[name] = f"{options[name]},{value}" if name in options else value
    return ApplicationArguments(
        source_args=tuple(args),
        options=options,
        non_option_args=tuple(non_option_args),
    )


# ============================================================================
#                              Properties files
# ============================================================================


def _logical_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield ``(first line number, logical line)`` pairs, joining continuations."""
    buffer: list[str] = []
    start = 0
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip() if not buffer else raw.lstrip()
        if not buffer:
            if not line or line[0] in "#!":
                continue
            start = lineno
        # an odd number of trailing backslashes continues the line
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            buffer.append(line[:-1])
            continue
        buffer.append(line)
        yield start, "".join(buffer)
        buffer = []
    if buffer:
        yield start, "".join(buffer)


def _split_property(line: str) -> tuple[str, str]:
    """Split a logical line at the first unescaped ``=``, ``:`` or whitespace."""
    match = re.search(r"(?<!\\)(\s*[=:]\s*|\s+)", line)
    if match is None:
        return line, ""
    return line[: match.start()], line[match.end() :]


def _unescape(text: str) -> str:
    return re.sub(
        r"\\(.)",
        lambda m: {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}.get(m[1], m[1]),
        text,
    )


def parse_properties(text: str, source: str = "<string>") -> dict[str, str]:
    """Parse the text of a ``.properties`` file.

    Args:
        text: File contents.
        source: Name reported in errors (usually the file path).

    Returns:
        dict[str, str]: Properties in file order; later duplicates win.

    Raises:
        PropertiesFileError: If a line has an empty key.
    """
    properties: dict[str, str] = {}
    for lineno, line in _logical_lines(text):
        key, value = _split_property(line)
        if not key:
            raise PropertiesFileError(source, lineno, line)
        properties[_unescape(key)] = _unescape(value.strip())
    return properties


def load_properties_file(path: Path) -> dict[str, str]:
    """Read and parse a properties file from disk."""
    return parse_properties(path.read_text(encoding="utf-8"), source=str(path))


def default_search_paths() -> list[Path]:
    """Return the default directories searched for ``application.properties``.

    Earlier entries take priority: ``./config``, the working directory and the
    packaged ``personservice.resources``.
    """
    cwd = Path.cwd()
    return [
        cwd / "config",
        cwd,
        Path(str(files("personservice.resources"))),
    ]


def _explicit_locations(value: str) -> list[Path]:
    locations = []
    for item in (s.strip() for s in value.split(",")):
        if not item:
            continue
        path = Path(item).expanduser()
        if not path.exists():
            raise ConfigFileNotFoundError(item)
        locations.append(path)
    return locations


def _base_file(location: Path) -> Path:
    """Return the plain properties file a location stands for."""
    if location.is_dir():
        return location / f"{PROPERTIES_FILE_NAME}{PROPERTIES_FILE_SUFFIX}"
    return location


def _profile_file(location: Path, profile: str) -> Path:
    base = _base_file(location)
    return base.with_name(f"{base.stem}-{profile}{PROPERTIES_FILE_SUFFIX}")


def load_file_sources(
    locations: Sequence[Path], profiles: Sequence[str] = ()
) -> list[PropertySource]:
    """Load properties files from *locations* into property sources.

    Profile-specific files outrank every plain ``application.properties`` and
    later profiles outrank earlier ones. Missing files are skipped.

    Args:
        locations: Directories or files, highest priority first.
        profiles: Active profile names in declaration order.

    Returns:
        list[PropertySource]: Sources ordered highest priority first.
    """
    paths = [
        _profile_file(location, profile)
        for profile in reversed(profiles)
        for location in locations
    ]
    paths.extend(_base_file(location) for location in locations)
    return [
        PropertySource(str(path), load_properties_file(path))
        for path in paths
        if path.is_file()
    ]


# ============================================================================
#                                Environment
# ============================================================================


class Environment:
    """Ordered collection of property sources with key lookup.

    Sources are consulted in order; the first one defining a key wins. Values
    may reference other properties with ``${key}`` or ``${key:default}``.
    """

    def __init__(self, sources: Sequence[PropertySource] = ()) -> None:
        self.sources: tuple[PropertySource, ...] = tuple(sources)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._raw(key) is not None

    def _raw(self, key: str) -> str | None:
        for source in self.sources:
            if (value := source.get(key)) is not None:
                return value
        return None

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the resolved value of *key*, or *default* when undefined."""
        value = self._resolve(key, ())
        return default if value is None else value

    def _resolve(self, key: str, chain: tuple[str, ...]) -> str | None:
        if key in chain:
            raise PlaceholderResolutionError(chain[0], chain + (key,))
        value = self._raw(key)
        if value is None:
            return None
        return self._resolve_placeholders(value, chain + (key,))

    def _resolve_placeholders(self, value: str, chain: tuple[str, ...]) -> str:
        """Substitute placeholders innermost first until nothing changes.

        ``${a:${b}}`` first becomes ``${a:<value of b>}``, then resolves ``a``
        with that default. Placeholders nobody can resolve stay verbatim.
        """

        def replace(match: re.Match[str]) -> str:
            name, sep, fallback = match[1].partition(":")
            resolved = self._resolve(name.strip(), chain)
            if resolved is not None:
                return resolved
            if sep:
                return fallback
            return match[0]

        while (resolved := _PLACEHOLDER_RE.sub(replace, value)) != value:
            value = resolved
        return value

    @property
    def file_sources(self) -> tuple[PropertySource, ...]:
        """The sources loaded from properties files, highest priority first."""
        return tuple(
            source
            for source in self.sources
            if source.name not in (COMMAND_LINE_SOURCE_NAME, ENVIRONMENT_SOURCE_NAME)
        )

    def with_prefix(self, prefix: str) -> dict[str, str]:
        """Return all properties under *prefix*, with the prefix stripped."""
        names = {
            name
            for source in self.sources
            for name in source.names()
            if name.startswith(prefix) and len(name) > len(prefix)
        }
        return {name[len(prefix) :]: self.get(name) or "" for name in sorted(names)}


# ============================================================================
#                              Typed settings
# ============================================================================


def to_field_name(key: str) -> str:
    """Return the settings field name a property name binds to.

    Examples:
        ```py
        >>> to_field_name("logging.flight-recorder.capacity")
        'logging_flight_recorder_capacity'
        ```
    """
    return re.sub(r"[.\-]", "_", key).lower()


class PropertiesMappingSource(PydanticBaseSettingsSource):
    """Settings source over a mapping of dotted property names to strings."""

    def __init__(
        self, settings_cls: type[BaseSettings], properties: Mapping[str, str | None]
    ) -> None:
        super().__init__(settings_cls)
        self.properties = {
            to_field_name(key): value
            for key, value in properties.items()
            if value is not None
        }

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        return self.properties.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for field_name, field_info in self.settings_cls.model_fields.items():
            value, key, _ = self.get_field_value(field_info, field_name)
            if value is not None:
                values[key] = value
        return values


class CommandLineSettingsSource(PropertiesMappingSource):
    """Settings from ``--name=value`` command-line options."""

    def __init__(
        self, settings_cls: type[BaseSettings], arguments: ApplicationArguments
    ) -> None:
        super().__init__(settings_cls, arguments.options)


class PropertiesFileSettingsSource(PropertiesMappingSource):
    """Settings from the properties files of *environment*.

    Values go through the environment, so ``${...}`` placeholders are resolved.
    Only properties that bind to a field of *settings_cls* are resolved.
    """

    def __init__(
        self, settings_cls: type[BaseSettings], environment: Environment
    ) -> None:
        names = {
            name
            for source in environment.file_sources
            for name in source.names()
            if to_field_name(name) in settings_cls.model_fields
        }
        super().__init__(settings_cls, {name: environment.get(name) for name in names})


class MappingEnvSettingsSource(EnvSettingsSource):
    """pydantic's environment source, reading *environ* instead of `os.environ`."""

    def __init__(
        self, settings_cls: type[BaseSettings], environ: Mapping[str, str]
    ) -> None:
        super().__init__(settings_cls)
        case_sensitive = self.config.get("case_sensitive", False)
        ignore_empty = self.config.get("env_ignore_empty", False)
        self.env_vars = {
            (name if case_sensitive else name.lower()): value
            for name, value in environ.items()
            if not (ignore_empty and value == "")
        }


class PersonServiceSettings(BaseSettings):
    """Base for typed settings read from the application's property sources.

    Sources, highest priority first: keyword arguments, command-line options,
    environment variables, properties files.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    @classmethod
    def load(
        cls,
        arguments: ApplicationArguments,
        environ: Mapping[str, str],
        environment: Environment | None = None,
        **values: Any,
    ):
        """Validate the settings from *arguments*, *environ* and *environment*.

        Args:
            arguments: Parsed command-line arguments.
            environ: Environment variables.
            environment: Environment whose properties files are read, if any.
            **values: Explicit values, outranking every source.

        Raises:
            InvalidSettingsError: If a value does not validate.
        """

        class _Sourced(cls):
            @classmethod
            def settings_customise_sources(
                cls,
                settings_cls: type[BaseSettings],
                init_settings: PydanticBaseSettingsSource,
                env_settings: PydanticBaseSettingsSource,
                dotenv_settings: PydanticBaseSettingsSource,
                file_secret_settings: PydanticBaseSettingsSource,
            ) -> tuple[PydanticBaseSettingsSource, ...]:
                sources: list[PydanticBaseSettingsSource] = [
                    init_settings,
                    CommandLineSettingsSource(settings_cls, arguments),
                    MappingEnvSettingsSource(settings_cls, environ),
                ]
                if environment is not None:
                    sources.append(
                        PropertiesFileSettingsSource(settings_cls, environment)
                    )
                return tuple(sources)

        _Sourced.__name__ = _Sourced.__qualname__ = cls.__name__
        try:
            return _Sourced(**values)
        except ValidationError as e:
            raise InvalidSettingsError(cls.__name__, e) from e


class BootstrapSettings(PersonServiceSettings):
    """Settings that decide which properties files are read."""

    config_location: str | None = Field(
        default=None,
        description="Comma-separated files or directories replacing the search paths",
    )
    profiles_active: str = Field(
        default="",
        description="Comma-separated active profiles; later profiles win",
    )

    @property
    def profiles(self) -> list[str]:
        return [p.strip() for p in self.profiles_active.split(",") if p.strip()]


# ============================================================================
#                              Building it all
# ============================================================================


def build_environment(
    args: Sequence[str],
    environ: Mapping[str, str] | None = None,
    search_paths: Sequence[Path] | None = None,
) -> tuple[Environment, ApplicationArguments]:
    """Build the application environment from arguments, variables and files.

    Args:
        args: Process arguments, forwarded unparsed from the entrypoint.
        environ: Environment variables; defaults to ``os.environ``.
        search_paths: Directories or files searched for properties when no
            ``config.location`` is given; defaults to `default_search_paths()`.

    Returns:
        tuple[Environment, ApplicationArguments]: The environment and the parsed
        arguments.

    Raises:
        ConfigurationError: If the arguments or any properties file are invalid,
            or an explicit ``config.location`` does not exist.
    """
    arguments = parse_arguments(args)
    environ = dict(os.environ if environ is None else environ)
    leading = [
        PropertySource(COMMAND_LINE_SOURCE_NAME, arguments.options),
        EnvironmentVariablesPropertySource(ENVIRONMENT_SOURCE_NAME, environ),
    ]
    settings = BootstrapSettings.load(arguments, environ)

    if settings.config_location:
        locations = _explicit_locations(settings.config_location)
    else:
        locations = list(
            default_search_paths() if search_paths is None else search_paths
        )

    profiles = settings.profiles
    file_sources = load_file_sources(locations, profiles)
    if not profiles:
        # profiles may also be activated from a properties file
        profiles = BootstrapSettings.load(
            arguments, environ, Environment(file_sources)
        ).profiles
        if profiles:
            file_sources = load_file_sources(locations, profiles)

    return Environment(leading + file_sources), arguments

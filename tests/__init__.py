"""personService test suite.

Folder taxonomy
- unit/         : Isolated, fast checks of a single module/class/function.
- integration/  : Real interactions with the filesystem and global logging state.
- e2e/          : The ``personservice`` console command driven through CliRunner.

General guidance
- Keep unit fast and deterministic; prefer fakes (e.g. a fake bootstrap) at boundaries.
- Integration tests use temporary directories and close every container they start.
- e2e asserts user-observable output, not internals.
- Markers: unit, integration, e2e (applied by each folder's conftest).
"""

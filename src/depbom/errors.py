from __future__ import annotations

import click


class BomError(click.ClickException):
    """Fatal failure while building a bill of materials.

    Every error that reaches the user is a ``BomError`` so click reports it
    the same way: ``Error: <message>`` on stderr and exit status 1.
    """


class ConfigError(BomError):
    pass


class WorkspaceError(BomError):
    pass


class UnresolvedDependencyError(BomError):
    pass


def from_os_error(exc: OSError) -> BomError:
    target = f" `{exc.filename}`" if exc.filename else ""
    reason = exc.strerror or str(exc)
    return BomError(f"failed to read{target}: {reason}")

"""CLI command modules for tiauth.

Each module exposes a ``register(subparsers)`` function that wires up
its argparse sub-commands and sets ``parser.set_defaults(func=handler)``.
"""

from . import identities, io, schema, server
from .identities import cmd_identities_list
from .io import cmd_import_files
from .schema import cmd_schema_init
from .server import cmd_serve

# All command modules with register() functions, in registration order.
COMMAND_MODULES = [
    server,
    schema,
    identities,
    io,
]

__all__ = [
    "COMMAND_MODULES",
    "cmd_identities_list",
    "cmd_import_files",
    "cmd_schema_init",
    "cmd_serve",
]

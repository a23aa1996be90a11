"""Engine argument construction for a migration phase.

Arguments are kept as typed flag/value pairs and only turned into the engine's
token form by ``render_tokens``/``render_command_line`` at the launch boundary.
"""

import shlex
from dataclasses import dataclass

from .. import constants as c
from ..models.enums import PathTopology, Phase
from ..models.run import RunRequest
from .config_loader import MigrationConfig
from .topology import resolve_retry_policy

PATH_SEPARATORS = "\\/"


@dataclass(frozen=True)
class EngineArgument:
    """One engine switch with its optional inline value and trailing operands.

    ``flag`` is empty for positional arguments (source and destination). ``value`` is
    joined to the flag with a colon (``/R:3``); ``operands`` follow as separate tokens
    (``/XD cache temp``). ``raw`` arguments are passed through exactly as given.
    """

    flag: str = ""
    value: str | None = None
    operands: tuple[str, ...] = ()
    is_path: bool = False
    raw: bool = False

    def tokens(self) -> list[str]:
        """Render this argument into engine tokens."""
        if self.raw:
            return [self.flag]

        rendered: list[str] = []
        if self.value is None:
            rendered.append(self.flag)
        else:
            value = quote_token(normalize_path(self.value) if self.is_path else self.value)
            rendered.append(f"{self.flag}:{value}" if self.flag else value)
        rendered.extend(quote_token(operand) for operand in self.operands)
        return rendered


def normalize_path(path: str) -> str:
    """Strip trailing separators so a closing quote is never escaped.

    Drive roots such as ``C:\\`` keep their separator, since ``C:`` alone means the
    current directory on that drive.
    """
    stripped = path.rstrip(PATH_SEPARATORS)
    if not stripped or stripped.endswith(":"):
        return path
    return stripped


def quote_token(value: str) -> str:
    """Double-quote values containing whitespace."""
    if any(ch.isspace() for ch in value) and not (value.startswith('"') and value.endswith('"')):
        return f'"{value}"'
    return value


def build_arguments(
    request: RunRequest,
    topology: PathTopology,
    config: MigrationConfig,
    *,
    log_path: str,
    backup_mode: bool,
    append_log: bool = False,
) -> list[EngineArgument]:
    """Build the ordered engine argument list for a run.

    This is a pure function: identical inputs always produce identical arguments.

    Args:
        request: Resolved run parameters (phase, effective paths, dry-run flag)
        topology: Classification driving the retry policy
        config: Immutable migration settings
        log_path: Engine report destination
        backup_mode: Whether the running principal holds the backup privilege
        append_log: Append to an existing log instead of overwriting it

    Returns:
        Ordered list of engine arguments
    """
    policy = resolve_retry_policy(topology, config)

    arguments = [
        EngineArgument(value=request.source, is_path=True),
        EngineArgument(value=request.destination, is_path=True),
        EngineArgument(c.FLAG_SUBDIRS_INCLUDING_EMPTY),
        EngineArgument(c.FLAG_RETRY_COUNT, str(policy.retries)),
        EngineArgument(c.FLAG_RETRY_WAIT, str(policy.wait_seconds)),
        EngineArgument(c.FLAG_FAT_TIMESTAMPS),
        EngineArgument(c.FLAG_FULL_PATHS),
        EngineArgument(c.FLAG_EXCLUDE_JUNCTIONS),
        EngineArgument(c.FLAG_THREADS, str(config.threads)),
        EngineArgument(c.FLAG_BYTES),
        EngineArgument(c.FLAG_VERBOSE),
    ]

    copy_mode = c.COPY_WITH_SECURITY if config.preserve_acls else c.COPY_WITHOUT_SECURITY
    arguments.append(EngineArgument(c.FLAG_COPY, copy_mode))
    arguments.append(EngineArgument(c.FLAG_DIR_COPY, c.DIR_COPY_TIMESTAMPS))

    arguments.append(EngineArgument(c.FLAG_BACKUP_RESTARTABLE if backup_mode else c.FLAG_RESTARTABLE))

    if config.throttle_ipg_ms > 0:
        arguments.append(EngineArgument(c.FLAG_INTER_PACKET_GAP, str(config.throttle_ipg_ms)))

    if config.exclude_dirs:
        arguments.append(
            EngineArgument(
                c.FLAG_EXCLUDE_DIRS, operands=tuple(normalize_path(d) for d in config.exclude_dirs)
            )
        )
    if config.exclude_files:
        arguments.append(EngineArgument(c.FLAG_EXCLUDE_FILES, operands=tuple(config.exclude_files)))

    if request.custom_options.strip():
        arguments.extend(
            EngineArgument(token, raw=True)
            for token in shlex.split(request.custom_options, posix=False)
        )

    if request.dry_run:
        arguments.append(EngineArgument(c.FLAG_LIST_ONLY))

    if request.phase is Phase.MIRROR:
        arguments.append(EngineArgument(c.FLAG_MIRROR))
        arguments.append(EngineArgument(c.FLAG_COPY_ALL))

    log_flag = c.FLAG_LOG_APPEND if append_log else c.FLAG_LOG
    arguments.append(EngineArgument(log_flag, log_path, is_path=True))
    arguments.append(EngineArgument(c.FLAG_TEE))

    return arguments


def render_tokens(arguments: list[EngineArgument]) -> list[str]:
    """Flatten arguments into the engine's token form."""
    tokens: list[str] = []
    for argument in arguments:
        tokens.extend(argument.tokens())
    return tokens


def render_command_line(engine_path: str, arguments: list[EngineArgument]) -> str:
    """Join the engine path and argument tokens into a single command line."""
    return " ".join([quote_token(engine_path), *render_tokens(arguments)])

"""
Configuration loading

Reads fzc.toml (local or per-user), validates provider aliases and turns
[[commands]] blocks into catalog entries.
"""

import fnmatch
import logging
import os
import tomllib
from collections import namedtuple
from pathlib import Path

from fzc.model import (
    PARAM_FLAG,
    PARAM_VALUE,
    SOURCE_CONFIG,
    CommandEntry,
    ParamSpec,
    default_prompt,
    parse_bool_literal,
)

logger = logging.getLogger(__name__)

APP_DIR_NAME = 'fzc'
CONFIG_FILE_NAME = 'config.toml'
LOCAL_CONFIG_NAMES = ('fzc.toml', '.fzc.toml')

PROVIDER_NAMES = ('config', 'artisan', 'composer', 'justfile')
DEFAULT_USAGE_WEIGHT = 8000
DEFAULT_JUSTFILE_PATH = 'justfile'

LARAVEL_SCOPES = ('laravel', 'project:laravel', 'framework:laravel')
COMPOSER_SCOPES = ('composer', 'project:composer', 'tool:composer')

RankingSettings = namedtuple('RankingSettings', ['usage_enabled', 'usage_weight'])
RankingSettings.__new__.__defaults__ = (True, DEFAULT_USAGE_WEIGHT)

ProviderSettings = namedtuple('ProviderSettings', ['enabled', 'alias', 'path', 'options'])
ProviderSettings.__new__.__defaults__ = (False, None, None, ())

LoadedConfig = namedtuple('LoadedConfig', ['path', 'ranking', 'providers', 'commands'])


class ConfigError(Exception):
    """Invalid or unreadable configuration"""


def config_dir():
    """Per-user fzc directory (~/.config/fzc, $XDG_CONFIG_HOME/fzc or %APPDATA%\\fzc)"""
    if os.name == 'nt' and os.environ.get('APPDATA'):
        root = Path(os.environ['APPDATA'])
    elif os.environ.get('XDG_CONFIG_HOME'):
        root = Path(os.environ['XDG_CONFIG_HOME'])
    else:
        root = Path.home() / '.config'
    return root / APP_DIR_NAME


def global_config_path():
    return config_dir() / CONFIG_FILE_NAME


def default_config():
    return LoadedConfig(None, RankingSettings(), _parse_providers({}), [])


def load(cwd, explicit_path=None):
    """Find and parse the config: explicit path, ./fzc.toml, ./.fzc.toml, then the per-user file"""
    if explicit_path is not None:
        return load_from_path(Path(explicit_path))

    for name in LOCAL_CONFIG_NAMES:
        candidate = Path(cwd) / name
        if candidate.exists():
            return load_from_path(candidate)

    candidate = global_config_path()
    if candidate.exists():
        return load_from_path(candidate)

    logger.info("No config file found, using defaults")
    return default_config()


def load_from_path(path):
    try:
        with open(path, 'rb') as f:
            raw = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"failed to read {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"invalid TOML in {path}: {e}") from e

    logger.info("Loaded config from %s", path)
    return parse_config(raw, path)


def parse_config(raw, path=None):
    """Validate a decoded TOML document"""
    ranking_raw = _table(raw.get('ranking', {}), 'ranking')
    usage_enabled = ranking_raw.get('usage_enabled', True)
    usage_weight = ranking_raw.get('usage_weight', DEFAULT_USAGE_WEIGHT)
    if not isinstance(usage_enabled, bool):
        raise ConfigError("ranking.usage_enabled must be true or false")
    if not isinstance(usage_weight, int) or isinstance(usage_weight, bool):
        raise ConfigError("ranking.usage_weight must be an integer")

    providers = _parse_providers(_table(raw.get('providers', {}), 'providers'))

    commands = raw.get('commands', [])
    if not isinstance(commands, list):
        raise ConfigError("'commands' must be an array of tables ([[commands]])")
    for index, command in enumerate(commands):
        _validate_command(command, index)

    return LoadedConfig(path, RankingSettings(usage_enabled, usage_weight), providers, commands)


def _table(value, where):
    if not isinstance(value, dict):
        raise ConfigError(f"'{where}' must be a table")
    return value


def _parse_providers(raw):
    providers = {}
    for name in PROVIDER_NAMES:
        value = raw.get(name, False)
        path = DEFAULT_JUSTFILE_PATH if name == 'justfile' else None

        # Legacy form: `artisan = true`
        if isinstance(value, bool):
            providers[name] = ProviderSettings(value, None, path, ())
            continue

        table = _table(value, f"providers.{name}")
        enabled = table.get('enabled', False)
        alias = table.get('alias')
        if not isinstance(enabled, bool):
            raise ConfigError(f"providers.{name}.enabled must be true or false")
        if alias is not None and not isinstance(alias, str):
            raise ConfigError(f"providers.{name}.alias must be a string")

        options = ()
        if name == 'justfile':
            path = table.get('path', DEFAULT_JUSTFILE_PATH)
            options = table.get('options', [])
            if isinstance(options, str):
                options = [options]
            if not isinstance(options, list) or not all(isinstance(option, str) for option in options):
                raise ConfigError("providers.justfile.options must be a string or a list of strings")
            options = tuple(options)

        providers[name] = ProviderSettings(enabled, alias, path, options)
    return providers


def _validate_command(command, index):
    if not isinstance(command, dict):
        raise ConfigError(f"commands[{index}] must be a table")
    if not isinstance(command.get('name'), str) or not command['name'].strip():
        raise ConfigError(f"commands[{index}] needs a non-empty 'name'")
    run = command.get('run', command.get('cmd'))
    if not isinstance(run, str):
        raise ConfigError(f"command '{command['name']}' needs a 'run' string")

    for param in command.get('params', []):
        if not isinstance(param, dict) or not isinstance(param.get('name'), str):
            raise ConfigError(f"command '{command['name']}' has a parameter without a name")
        kind = param.get('type', PARAM_VALUE)
        if kind not in (PARAM_VALUE, PARAM_FLAG):
            raise ConfigError(
                f"parameter '{param['name']}' of '{command['name']}' has unknown type '{kind}'"
            )


def alias_map(providers):
    """Map normalized alias -> provider name; empty or duplicated aliases are errors"""
    aliases = {}
    for name in PROVIDER_NAMES:
        settings = providers.get(name)
        if settings is None or settings.alias is None:
            continue

        normalized = settings.alias.strip().lstrip(':').lower()
        if not normalized:
            raise ConfigError(f"provider alias for '{name}' cannot be empty")
        if normalized in aliases:
            raise ConfigError(
                f"provider alias ':{normalized}' is duplicated between "
                f"'{aliases[normalized]}' and '{name}'"
            )
        aliases[normalized] = name
    return aliases


def find_ancestor_with(start, filename):
    """Closest directory (start included) that contains the given file"""
    start = Path(start)
    for directory in (start, *start.parents):
        if (directory / filename).is_file():
            return directory
    return None


def matches_scope(patterns, cwd):
    """Whether a command restricted to the given scopes applies in cwd"""
    if not patterns:
        return True

    cwd = Path(cwd)
    laravel_root = find_ancestor_with(cwd, 'artisan')
    composer_root = find_ancestor_with(cwd, 'composer.json')

    candidates = [cwd]
    if laravel_root is not None:
        candidates += [
            laravel_root,
            laravel_root / 'app',
            laravel_root / 'app' / '__fzc_scope_marker__',
            laravel_root / 'artisan',
        ]
    if composer_root is not None:
        candidates += [composer_root, composer_root / 'composer.json']

    for pattern in patterns:
        special = pattern.strip().lower()
        if special in LARAVEL_SCOPES and laravel_root is not None:
            return True
        if special in COMPOSER_SCOPES and composer_root is not None:
            return True
        if any(fnmatch.fnmatchcase(candidate.as_posix(), pattern) for candidate in candidates):
            return True
    return False


def _literal_text(raw):
    if raw is None:
        return None
    if isinstance(raw, bool):
        return 'true' if raw else 'false'
    return str(raw)


def param_from_config(raw):
    name = raw['name']
    kind = raw.get('type', PARAM_VALUE)
    prompt = raw.get('prompt')

    if kind == PARAM_FLAG:
        default = parse_bool_literal(raw.get('default'))
        value = parse_bool_literal(raw.get('value'))
    else:
        default = _literal_text(raw.get('default'))
        value = _literal_text(raw.get('value'))

    return ParamSpec(
        name=name,
        kind=kind,
        prompt=prompt or default_prompt(name, kind),
        placeholder=raw.get('placeholder'),
        default=default,
        value=value,
        required=bool(raw.get('required', False)),
        force_prompt=prompt is not None,
    )


def commands_from_config(loaded, cwd):
    """Catalog entries from [[commands]] whose scopes match cwd"""
    entries = []
    for raw in loaded.commands:
        if not matches_scope(raw.get('scopes', []), cwd):
            continue

        working_dir = raw.get('working_dir')
        if working_dir:
            working_dir = Path(working_dir).expanduser()
            if not working_dir.is_absolute():
                working_dir = Path(cwd) / working_dir

        entries.append(CommandEntry(
            name=raw['name'],
            description=raw.get('description'),
            template=raw.get('run', raw.get('cmd')),
            params=tuple(param_from_config(param) for param in raw.get('params', [])),
            source=SOURCE_CONFIG,
            working_dir=working_dir or None,
        ))
    return entries


def write_example_config(path, force=False):
    """Materialize the default config, refusing to overwrite unless forced"""
    path = Path(path)
    if path.exists() and not force:
        raise ConfigError(f"{path} already exists. Use --force to overwrite.")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(EXAMPLE_CONFIG)
    except OSError as e:
        raise ConfigError(f"failed to write {path}: {e}") from e
    logger.info("Wrote example config to %s", path)


EXAMPLE_CONFIG = """\
# fzc config
#
# Commands use {{param}} placeholders inside `run`.
# Parameter types:
#   value (default)  free text
#   flag             y/n prompt, renders --name when enabled

[ranking]
usage_enabled = true
usage_weight = 8000

# Commands written in this file ([[commands]] blocks)
[providers.config]
enabled = true
alias = "cf"

# Laravel artisan commands, when inside a Laravel project
[providers.artisan]
enabled = false
alias = "a"

# composer commands and scripts, when composer.json is present
[providers.composer]
enabled = false
alias = "co"

# just recipes
[providers.justfile]
enabled = false
path = "justfile"
options = "--working-directory ."
alias = "j"

# [[commands]]
# name = "Run tests"
# run = "php artisan test --filter={{filter}} {{no-coverage}}"
# description = "Example command"
# scopes = ["laravel"]
#
# [[commands.params]]
# name = "filter"
# prompt = "Test filter"
# required = true
#
# [[commands.params]]
# name = "no-coverage"
# type = "flag"
# default = false
"""

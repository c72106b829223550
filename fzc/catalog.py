"""
Catalog snapshots and internal commands

A Catalog is built once per load and never mutated; /reload builds a new
one on a worker thread and the launcher swaps it in wholesale.
"""

import logging
from collections import namedtuple

from fzc import config, providers
from fzc.model import provider_name

logger = logging.getLogger(__name__)

RuntimeContext = namedtuple('RuntimeContext', ['cwd', 'explicit_config_path'])
RuntimeContext.__new__.__defaults__ = (None,)

# Internal commands
INTERNAL_RELOAD = 'reload'
INTERNAL_INIT = 'init'
INTERNAL_UNKNOWN = 'unknown'

FORCE_TOKENS = ('--force', '-f')

InternalCommandDef = namedtuple('InternalCommandDef', ['name', 'description', 'kind', 'default_force'])

INTERNAL_COMMANDS = (
    InternalCommandDef('/init', 'Create default config file', INTERNAL_INIT, False),
    InternalCommandDef('/reload', 'Reload config and providers', INTERNAL_RELOAD, False),
)

# What the worker sends back over its one-shot queue
InternalResult = namedtuple('InternalResult', ['catalog', 'messages', 'error'])


class Catalog:
    """Immutable snapshot of commands, provider aliases and ranking settings"""

    def __init__(self, commands=(), aliases=None, ranking=None, config_path=None):
        self.commands = tuple(sorted(commands, key=lambda entry: entry.name.lower()))
        self.aliases = dict(aliases or {})
        self.ranking = ranking or config.RankingSettings()
        self.config_path = config_path
        self.alias_by_provider = {provider: alias for alias, provider in self.aliases.items()}
        self.unaliased_providers = frozenset(
            provider_name(entry).lower()
            for entry in self.commands
            if provider_name(entry) not in self.alias_by_provider
        )

    def __len__(self):
        return len(self.commands)

    def badge(self, entry):
        """Short provider label shown next to an entry"""
        name = provider_name(entry)
        return self.alias_by_provider.get(name, name)


def load_catalog(runtime):
    """Read config and every enabled provider; raises ConfigError on bad config"""
    loaded = config.load(runtime.cwd, runtime.explicit_config_path)
    aliases = config.alias_map(loaded.providers)

    commands = []
    if loaded.providers['config'].enabled:
        commands.extend(config.commands_from_config(loaded, runtime.cwd))
    commands.extend(providers.load_provider_commands(loaded.providers, runtime.cwd))

    logger.info("Catalog loaded with %d commands", len(commands))
    return Catalog(commands, aliases, loaded.ranking, loaded.path)


def parse_internal_command(query):
    """(kind, force, name) for a '/...' query, or None for a normal query"""
    trimmed = query.strip()
    if not trimmed.startswith('/'):
        return None

    parts = trimmed[1:].split()
    name = parts[0].lower() if parts else ''
    if name == INTERNAL_RELOAD:
        return INTERNAL_RELOAD, False, name
    if name == INTERNAL_INIT:
        return INTERNAL_INIT, has_force_token(trimmed), name
    return INTERNAL_UNKNOWN, False, name


def has_force_token(query):
    return any(part in FORCE_TOKENS for part in query.split())


def unknown_command_message(name):
    if name:
        return f"Unknown internal command '/{name}'. Available: /reload, /init"
    return "Unknown internal command. Available: /reload, /init"


def run_internal_task(runtime, kind, force=False, name=''):
    """Blocking work behind /reload and /init; never raises"""
    if kind == INTERNAL_RELOAD:
        try:
            catalog = load_catalog(runtime)
        except config.ConfigError as e:
            return InternalResult(None, [], f"reload failed: {e}")
        return InternalResult(catalog, [f"Reloaded {len(catalog)} commands"], None)

    if kind == INTERNAL_INIT:
        path = config.global_config_path()
        try:
            config.write_example_config(path, force)
        except config.ConfigError as e:
            return InternalResult(None, [], f"init failed: {e}")
        try:
            catalog = load_catalog(runtime)
        except config.ConfigError as e:
            return InternalResult(None, [f"Wrote example config: {path}"], f"reload failed: {e}")
        return InternalResult(
            catalog,
            [f"Wrote example config: {path}", f"Reloaded {len(catalog)} commands"],
            None,
        )

    return InternalResult(None, [], unknown_command_message(name))

"""
Command providers

Discover runnable commands from project tooling: Laravel artisan, composer
and just. A missing or failing tool simply contributes no commands.
"""

import json
import logging
import os
import re
import shlex
import subprocess
from pathlib import Path

from fzc.config import find_ancestor_with
from fzc.model import CommandEntry

logger = logging.getLogger(__name__)

TOOL_TIMEOUT = 15

BASIC_COMPOSER_COMMANDS = (
    ('install', 'Install project dependencies'),
    ('update', 'Update dependencies'),
    ('dump-autoload', 'Regenerate autoloader files'),
    ('validate', 'Validate composer.json and composer.lock'),
    ('show', 'List installed packages'),
    ('outdated', 'Show outdated dependencies'),
    ('audit', 'Run security audit on dependencies'),
)

_SHELL_SAFE = re.compile(r'^[A-Za-z0-9_\-./:=+@%]+$')
_RECIPE_NAME = re.compile(r'^[A-Za-z0-9_\-:]+$')


def load_provider_commands(providers, cwd):
    """Entries from every enabled provider"""
    commands = []
    if providers['artisan'].enabled:
        commands.extend(load_artisan_commands(cwd))
    if providers['composer'].enabled:
        commands.extend(load_composer_commands(cwd))
    if providers['justfile'].enabled:
        commands.extend(load_justfile_commands(cwd, providers['justfile']))
    return commands


def _tool_output(args, cwd):
    """stdout of a successful tool run, or None"""
    try:
        result = subprocess.run(
            args,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=TOOL_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("Provider tool %s failed to run: %s", args[0], e)
        return None

    if result.returncode != 0:
        logger.debug("Provider tool %s exited with %s", args[0], result.returncode)
        return None
    return result.stdout


# --- artisan ---

def load_artisan_commands(cwd):
    root = find_ancestor_with(cwd, 'artisan')
    if root is None:
        return []

    names = parse_artisan_commands(
        _tool_output(['php', 'artisan', 'list', '--raw', '--no-ansi'], root) or ''
    )
    descriptions = parse_artisan_descriptions(
        _tool_output(['php', 'artisan', 'list', '--format=json', '--no-ansi'], root) or ''
    )

    return [
        CommandEntry(
            name=f"artisan {name}",
            description=(descriptions.get(name) or '').strip() or 'Laravel artisan command',
            template=f"php artisan {name} --ansi",
            source='artisan',
            working_dir=root,
        )
        for name in names
    ]


def parse_artisan_commands(raw):
    """Command names from `artisan list --raw`, hidden (_-prefixed) ones dropped"""
    commands = set()
    for line in raw.splitlines():
        parts = line.split()
        if not parts or parts[0].startswith('_'):
            continue
        commands.add(parts[0])
    return sorted(commands)


def parse_artisan_descriptions(raw):
    """name -> description from `artisan list --format=json`"""
    try:
        data = json.loads(raw)
    except ValueError:
        return {}

    commands = data.get('commands') if isinstance(data, dict) else None
    descriptions = {}
    if isinstance(commands, list):
        for command in commands:
            if isinstance(command, dict) and isinstance(command.get('name'), str):
                descriptions[command['name']] = str(command.get('description') or '')
    elif isinstance(commands, dict):
        for name, command in commands.items():
            if isinstance(command, dict):
                descriptions[name] = str(command.get('description') or '')
    return descriptions


# --- composer ---

def load_composer_commands(cwd):
    root = find_ancestor_with(cwd, 'composer.json')
    if root is None:
        return []

    commands = [
        CommandEntry(
            name=f"composer {name}",
            description=description,
            template=f"composer {name}",
            source='composer',
            working_dir=root,
        )
        for name, description in BASIC_COMPOSER_COMMANDS
    ]

    try:
        raw = (root / 'composer.json').read_text(encoding='utf-8')
    except OSError:
        raw = ''

    for script in parse_composer_scripts(raw):
        commands.append(CommandEntry(
            name=f"composer script:{script}",
            description='composer script',
            template=f"composer run-script {script}",
            source='composer',
            working_dir=root,
        ))
    return commands


def parse_composer_scripts(raw):
    try:
        data = json.loads(raw)
    except ValueError:
        return []

    scripts = data.get('scripts') if isinstance(data, dict) else None
    if not isinstance(scripts, dict):
        return []
    return sorted(
        name.strip() for name in scripts
        if name.strip() and not name.strip().startswith('_')
    )


# --- just ---

def load_justfile_commands(cwd, settings):
    justfile = resolve_provider_path(cwd, settings.path or 'justfile')
    if justfile is None:
        return []

    options = tokenize_options(settings.options)
    raw = _tool_output(['just', *options, '--summary', '--justfile', str(justfile)], cwd)

    return [
        CommandEntry(
            name=f"just {recipe}",
            description='just recipe',
            template=build_just_template(justfile, options, recipe),
            source='justfile',
            working_dir=Path(cwd),
        )
        for recipe in parse_just_recipes(raw or '')
    ]


def parse_just_recipes(raw):
    """Recipe names from `just --summary` (also tolerates `just --list` style lines)"""
    recipes = set()
    for line in raw.splitlines():
        line = line.strip()
        if not line or line.lower().startswith('available recipes'):
            continue

        for token in line.split():
            if token in ('--', '#'):
                break
            name = token.strip(',').strip(':')
            if not name or name.startswith('_'):
                continue
            if name.lower() in ('available', 'recipes'):
                continue
            if not _RECIPE_NAME.match(name):
                continue
            recipes.add(name)
    return sorted(recipes)


def expand_home(raw_path):
    if raw_path == '~' or raw_path.startswith('~/') or (os.name == 'nt' and raw_path.startswith('~\\')):
        return Path(raw_path).expanduser()
    return Path(raw_path)


def resolve_provider_path(cwd, raw_path):
    """Absolute file path, or the first ancestor of cwd containing the relative path"""
    candidate = expand_home(raw_path)
    if candidate.is_absolute():
        return candidate if candidate.is_file() else None

    cwd = Path(cwd)
    for directory in (cwd, *cwd.parents):
        joined = directory / candidate
        if joined.is_file():
            return joined
    return None


def tokenize_options(options):
    return [token for option in options for token in option.split()]


def shell_quote(arg):
    if arg and _SHELL_SAFE.match(arg):
        return arg
    if os.name == 'nt':
        return '"' + arg.replace('"', '\\"') + '"'
    return shlex.quote(arg)


def build_just_template(justfile, options, recipe):
    pieces = ['just']
    pieces += [shell_quote(option) for option in options]
    pieces += ['--justfile', shell_quote(str(justfile)), shell_quote(recipe)]
    return ' '.join(pieces)

"""Catalog entries, parameter specs and command template rendering"""

import re
from collections import namedtuple

SOURCE_CONFIG = 'config'

PARAM_VALUE = 'value'
PARAM_FLAG = 'flag'

TRUE_WORDS = ('y', 'yes', 'true', '1', 'on')
FALSE_WORDS = ('n', 'no', 'false', '0', 'off')

PLACEHOLDER_PATTERN = re.compile(r'\{\{([^{}]+)\}\}')

CommandEntry = namedtuple(
    'CommandEntry',
    ['name', 'description', 'template', 'params', 'source', 'working_dir'],
)
CommandEntry.__new__.__defaults__ = (None, '', (), SOURCE_CONFIG, None)

ParamSpec = namedtuple(
    'ParamSpec',
    ['name', 'kind', 'prompt', 'placeholder', 'default', 'value', 'required', 'force_prompt'],
)
ParamSpec.__new__.__defaults__ = (PARAM_VALUE, '', None, None, None, False, False)


def provider_name(entry):
    """Name of the provider an entry came from ('config' for hand-written ones)"""
    return entry.source or SOURCE_CONFIG


def usage_key(entry):
    return f"{provider_name(entry)}::{entry.name}"


def display_name(entry):
    """Entry name without its redundant provider prefix ('artisan cache:clear' -> 'cache:clear')"""
    prefix = f"{provider_name(entry)} "
    if entry.name.lower().startswith(prefix):
        return entry.name[len(prefix):]
    return entry.name


def flag_token(param):
    if param.name.startswith('-'):
        return param.name
    return f"--{param.name}"


def default_prompt(name, kind):
    if kind == PARAM_FLAG:
        token = name if name.startswith('-') else f"--{name}"
        return f"Enable {token}?"
    return f"{name}:"


def requires_input(param):
    """Whether the user has to be asked for this parameter before running"""
    if param.kind == PARAM_FLAG:
        # Flags are interactive unless hardcoded
        return param.value is None
    return param.value is None and (param.force_prompt or param.required or param.default is None)


def parse_flag_input(text, default):
    """Parse a yes/no answer; empty means default, None means invalid"""
    answer = text.strip().lower()
    if not answer:
        return default
    if answer in TRUE_WORDS:
        return True
    if answer in FALSE_WORDS:
        return False
    return None


def parse_bool_literal(raw):
    """Parse a config literal (bool or yes/no-ish string) into a bool, or None"""
    if isinstance(raw, bool):
        return raw
    if raw is None:
        return None
    answer = str(raw).strip().lower()
    if answer in TRUE_WORDS or answer == 't':
        return True
    if answer in FALSE_WORDS or answer == 'f':
        return False
    return None


def flag_value_token(param, enabled):
    return flag_token(param) if enabled else ''


def render_template(template, values):
    """Replace every {{name}} occurrence with its collected value"""
    rendered = template
    for name, value in values.items():
        rendered = rendered.replace(f"{{{{{name}}}}}", value)
    return rendered


def has_unresolved_placeholders(rendered):
    return bool(PLACEHOLDER_PATTERN.search(rendered))

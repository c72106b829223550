"""
Tests for configuration loading and validation
"""

import pytest

from fzc import config
from fzc.config import ConfigError, alias_map, parse_config
from fzc.model import PARAM_FLAG, PARAM_VALUE


@pytest.fixture
def user_config_dir(tmp_path, monkeypatch):
    """Point the per-user config directory into tmp_path"""
    monkeypatch.setenv('XDG_CONFIG_HOME', str(tmp_path / 'xdg'))
    return tmp_path / 'xdg' / 'fzc'


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding='utf-8')
    return path


def test_defaults_without_config(tmp_path, user_config_dir):
    loaded = config.load(tmp_path)
    assert loaded.path is None
    assert loaded.ranking == config.RankingSettings(True, 8000)
    assert not loaded.providers['artisan'].enabled
    assert loaded.providers['justfile'].path == 'justfile'
    assert loaded.commands == []


def test_lookup_order(tmp_path, user_config_dir):
    project = tmp_path / 'project'
    project.mkdir()
    global_file = write(user_config_dir / 'config.toml', '')
    assert config.load(project).path == global_file

    hidden = write(project / '.fzc.toml', '')
    assert config.load(project).path == hidden

    local = write(project / 'fzc.toml', '')
    assert config.load(project).path == local

    explicit = write(tmp_path / 'other.toml', '')
    assert config.load(project, explicit).path == explicit


def test_missing_explicit_config_is_an_error(tmp_path):
    with pytest.raises(ConfigError):
        config.load(tmp_path, tmp_path / 'nope.toml')


def test_invalid_toml(tmp_path):
    path = write(tmp_path / 'fzc.toml', 'this is = = not toml')
    with pytest.raises(ConfigError) as excinfo:
        config.load_from_path(path)
    assert 'invalid TOML' in str(excinfo.value)


def test_ranking_validation():
    with pytest.raises(ConfigError):
        parse_config({'ranking': {'usage_weight': 'lots'}})
    with pytest.raises(ConfigError):
        parse_config({'ranking': {'usage_enabled': 'yes'}})
    assert parse_config({'ranking': {'usage_weight': 5}}).ranking.usage_weight == 5


def test_provider_forms():
    loaded = parse_config({
        'providers': {
            'artisan': True,
            'composer': {'enabled': True, 'alias': 'co'},
            'justfile': {'enabled': True, 'path': 'build/justfile', 'options': '--working-directory .'},
        }
    })
    assert loaded.providers['artisan'].enabled
    assert loaded.providers['composer'].alias == 'co'
    assert loaded.providers['justfile'].path == 'build/justfile'
    assert loaded.providers['justfile'].options == ('--working-directory .',)
    assert not loaded.providers['config'].enabled


def test_provider_validation():
    with pytest.raises(ConfigError):
        parse_config({'providers': {'artisan': 'yes'}})
    with pytest.raises(ConfigError):
        parse_config({'providers': {'justfile': {'options': [1, 2]}}})


def test_alias_map():
    loaded = parse_config({
        'providers': {
            'artisan': {'enabled': True, 'alias': ':A'},
            'composer': {'enabled': True, 'alias': 'co'},
        }
    })
    assert alias_map(loaded.providers) == {'a': 'artisan', 'co': 'composer'}


def test_duplicate_alias_is_fatal():
    loaded = parse_config({
        'providers': {
            'artisan': {'alias': 'x'},
            'composer': {'alias': ':X'},
        }
    })
    with pytest.raises(ConfigError) as excinfo:
        alias_map(loaded.providers)
    assert 'duplicated' in str(excinfo.value)


def test_empty_alias_is_fatal():
    loaded = parse_config({'providers': {'artisan': {'alias': ' : '}}})
    with pytest.raises(ConfigError):
        alias_map(loaded.providers)


def test_command_validation():
    with pytest.raises(ConfigError):
        parse_config({'commands': [{'run': 'echo'}]})
    with pytest.raises(ConfigError):
        parse_config({'commands': [{'name': 'x'}]})
    with pytest.raises(ConfigError):
        parse_config({'commands': [{'name': 'x', 'run': 'echo', 'params': [{'name': 'p', 'type': 'number'}]}]})
    with pytest.raises(ConfigError):
        parse_config({'commands': {'name': 'x'}})


def test_commands_from_config(tmp_path):
    loaded = parse_config({
        'commands': [
            {
                'name': 'Run tests',
                'run': 'pytest {{filter}} {{verbose}}',
                'description': 'Run the suite',
                'working_dir': 'sub',
                'params': [
                    {'name': 'filter', 'prompt': 'Filter', 'required': True},
                    {'name': 'verbose', 'type': 'flag', 'default': 'yes'},
                    {'name': 'retries', 'default': 3},
                ],
            },
            {'name': 'legacy', 'cmd': 'echo legacy'},
        ]
    })
    entries = config.commands_from_config(loaded, tmp_path)
    assert [entry.name for entry in entries] == ['Run tests', 'legacy']

    entry = entries[0]
    assert entry.template == 'pytest {{filter}} {{verbose}}'
    assert entry.working_dir == tmp_path / 'sub'
    filter_param, verbose, retries = entry.params
    assert filter_param.kind == PARAM_VALUE
    assert filter_param.force_prompt and filter_param.required
    assert verbose.kind == PARAM_FLAG
    assert verbose.default is True
    assert verbose.prompt == 'Enable --verbose?'
    assert retries.default == '3'
    assert entries[1].template == 'echo legacy'


def test_scopes(tmp_path):
    laravel = tmp_path / 'shop'
    write(laravel / 'artisan', '#!/usr/bin/env php')
    nested = laravel / 'app' / 'Models'
    nested.mkdir(parents=True)
    plain = tmp_path / 'plain'
    plain.mkdir()

    assert config.matches_scope([], plain)
    assert config.matches_scope(['laravel'], nested)
    assert not config.matches_scope(['laravel'], plain)
    assert not config.matches_scope(['composer'], nested)
    assert config.matches_scope([f"{tmp_path.as_posix()}/pl*"], plain)


def test_scoped_commands_are_filtered(tmp_path):
    loaded = parse_config({
        'commands': [
            {'name': 'migrate', 'run': 'php artisan migrate', 'scopes': ['laravel']},
            {'name': 'everywhere', 'run': 'ls'},
        ]
    })
    assert [entry.name for entry in config.commands_from_config(loaded, tmp_path)] == ['everywhere']


def test_write_example_config(tmp_path):
    path = tmp_path / 'fzc' / 'config.toml'
    config.write_example_config(path)
    loaded = config.load_from_path(path)
    assert loaded.providers['config'].enabled
    assert alias_map(loaded.providers)['cf'] == 'config'

    with pytest.raises(ConfigError) as excinfo:
        config.write_example_config(path)
    assert 'already exists' in str(excinfo.value)

    path.write_text('# mine', encoding='utf-8')
    config.write_example_config(path, force=True)
    assert path.read_text(encoding='utf-8') == config.EXAMPLE_CONFIG

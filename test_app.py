"""
Tests for the application state machine
"""

import pyperclip
import pytest

from fzc import app as app_mod
from fzc.app import (
    QUIT,
    AppState,
    InternalPromptMode,
    InternalRequest,
    ParamPromptMode,
    RunRequest,
    SearchMode,
)
from fzc.catalog import INTERNAL_INIT, INTERNAL_RELOAD, Catalog, InternalResult
from fzc.config import RankingSettings
from fzc.model import PARAM_FLAG, CommandEntry, ParamSpec
from fzc.runner import RunResult
from fzc.session import LINE_COMMAND, LINE_INFO, LINE_STDERR
from fzc.usage import UsageStore


def make_state(commands, aliases=None, ranking=None, usage=None):
    catalog = Catalog(commands, aliases or {}, ranking or RankingSettings(), None)
    return AppState(catalog, usage or UsageStore())


def type_text(state, text):
    for char in text:
        state.on_key(char)


def last_info(state):
    return [line.text for line in state.session if line.kind == LINE_INFO][-1]


def test_initial_session_lines():
    state = make_state([CommandEntry(name='hello', template='echo hello')])
    lines = [line.text for line in state.session]
    assert lines[0] == "Loaded 1 commands"
    assert lines[1].startswith("Config: none")


def test_typing_filters_and_resets_selection():
    state = make_state([
        CommandEntry(name='build', template='make build'),
        CommandEntry(name='clean', template='make clean'),
        CommandEntry(name='test', template='make test'),
    ])
    assert len(state.filtered) == 3

    state.on_key('DOWN')
    assert state.selected == 1

    type_text(state, 'cle')
    assert state.selected == 0
    assert state.catalog.commands[state.filtered[0].index].name == 'clean'


def test_selection_wraps():
    state = make_state([
        CommandEntry(name='a', template='echo a'),
        CommandEntry(name='b', template='echo b'),
    ])
    state.on_key('UP')
    assert state.selected == 1
    state.on_key('CTRL_J')
    assert state.selected == 0


def test_cursor_editing_with_multibyte_text():
    """Edits land at the cursor, by codepoint"""
    state = make_state([])
    type_text(state, 'héllo')
    assert state.cursor == 5

    state.on_key('LEFT')
    state.on_key('LEFT')
    state.on_key('LEFT')
    type_text(state, 'ü')
    assert state.query == 'héüllo'
    assert state.cursor == 3

    state.on_key('BACKSPACE')
    state.on_key('BACKSPACE')
    assert state.query == 'hllo'

    state.on_key('HOME')
    state.on_key('DELETE')
    assert state.query == 'llo'

    state.on_key('END')
    type_text(state, '→')
    assert state.query == 'llo→'


def test_escape_clears_then_quits():
    state = make_state([CommandEntry(name='a', template='echo a')])
    type_text(state, 'abc')
    assert state.on_key('ESC') is None
    assert state.query == ''
    assert state.on_key('ESC') == QUIT


def test_ctrl_c_quits():
    state = make_state([])
    type_text(state, 'x')
    assert state.on_key('CTRL_C') == QUIT


def test_help_overlay_reprocesses_keys():
    """Closing help with a normal key still applies that key"""
    state = make_state([CommandEntry(name='a', template='echo a')])
    state.on_key('?')
    assert state.show_help

    assert state.on_key('ESC') is None
    assert not state.show_help
    assert state.query == ''

    state.on_key('?')
    state.on_key('x')
    assert not state.show_help
    assert state.query == 'x'


def test_enter_runs_command_without_params():
    state = make_state([CommandEntry(name='hello', template='echo hello', working_dir='/tmp')])
    result = state.on_key('ENTER')
    assert result == RunRequest('hello', 'echo hello', '/tmp', 'config::hello', True)


def test_alt_enter_hands_control_to_shell():
    state = make_state([CommandEntry(name='hello', template='echo hello')])
    result = state.on_key('ALT_ENTER')
    assert isinstance(result, RunRequest)
    assert result.return_to_ui is False


def test_enter_on_session_pane_does_nothing():
    state = make_state([CommandEntry(name='hello', template='echo hello')])
    state.on_key('TAB')
    assert state.on_key('ENTER') is None


def test_enter_without_selection():
    state = make_state([])
    assert state.on_key('ENTER') is None
    assert last_info(state) == "No command selected"


def test_value_params_in_order():
    entry = CommandEntry(
        name='greet',
        template='echo {{greeting}} {{name}} {{greeting}}',
        params=(
            ParamSpec('greeting', default='hi'),
            ParamSpec('name', required=True),
        ),
    )
    state = make_state([entry])

    # greeting has a default and no custom prompt, so only name is asked
    assert state.on_key('ENTER') is None
    assert isinstance(state.mode, ParamPromptMode)
    assert len(state.mode.pending) == 1

    assert state.on_key('ENTER') is None
    assert last_info(state) == "'name' is required"
    assert isinstance(state.mode, ParamPromptMode)

    type_text(state, 'bob')
    result = state.on_key('ENTER')
    assert result.command_line == 'echo hi bob hi'
    assert isinstance(state.mode, SearchMode)


def test_optional_value_param_accepts_empty():
    entry = CommandEntry(name='ls', template='ls {{path}}', params=(ParamSpec('path'),))
    state = make_state([entry])
    state.on_key('ENTER')
    result = state.on_key('ENTER')
    assert result.command_line == 'ls '


def test_value_param_default_used_on_empty_input():
    entry = CommandEntry(
        name='serve',
        template='serve --port {{port}}',
        params=(ParamSpec('port', prompt='Port?', default='8000', force_prompt=True),),
    )
    state = make_state([entry])
    state.on_key('ENTER')
    assert isinstance(state.mode, ParamPromptMode)
    assert state.on_key('ENTER').command_line == 'serve --port 8000'


def test_flag_default_false_enter_omits_flag():
    entry = CommandEntry(
        name='test',
        template='php artisan test {{coverage}}',
        params=(ParamSpec('coverage', kind=PARAM_FLAG, default=False),),
    )
    state = make_state([entry])
    state.on_key('ENTER')
    result = state.on_key('ENTER')
    assert '--coverage' not in result.command_line
    assert result.command_line == 'php artisan test '


def test_flag_single_keystroke_resolves():
    """'y' answers the flag without Enter"""
    entry = CommandEntry(
        name='test',
        template='php artisan test {{coverage}}',
        params=(ParamSpec('coverage', kind=PARAM_FLAG, default=False),),
    )
    state = make_state([entry])
    state.on_key('ENTER')
    result = state.on_key('y')
    assert result.command_line == 'php artisan test --coverage'


def test_flag_invalid_input_reprompts():
    entry = CommandEntry(
        name='test',
        template='run {{-v}}',
        params=(ParamSpec('-v', kind=PARAM_FLAG, default=True),),
    )
    state = make_state([entry])
    state.on_key('ENTER')
    type_text(state, 'maybe')
    assert state.on_key('ENTER') is None
    assert last_info(state) == "Please enter y or n"
    assert state.mode.input == ''

    type_text(state, 'on')
    assert state.mode.input == 'on'
    assert state.on_key('ENTER').command_line == 'run -v'


def test_hardcoded_values_are_not_prompted():
    entry = CommandEntry(
        name='fixed',
        template='run {{env}} {{force}}',
        params=(
            ParamSpec('env', value='prod'),
            ParamSpec('force', kind=PARAM_FLAG, value=True),
        ),
    )
    state = make_state([entry])
    assert state.on_key('ENTER').command_line == 'run prod --force'


def test_unresolved_placeholders_abort():
    entry = CommandEntry(name='broken', template='echo {{missing}}')
    state = make_state([entry])
    assert state.on_key('ENTER') is None
    assert isinstance(state.mode, SearchMode)
    assert last_info(state) == "Command 'broken' still has unresolved placeholders"


def test_param_entry_cancel():
    entry = CommandEntry(name='ls', template='ls {{path}}', params=(ParamSpec('path', required=True),))
    state = make_state([entry])
    state.on_key('ENTER')
    type_text(state, 'abc')
    state.on_key('ESC')
    assert isinstance(state.mode, SearchMode)
    assert last_info(state) == "Parameter entry canceled"


def test_internal_reload():
    state = make_state([])
    type_text(state, '/reload')
    assert state.on_key('ENTER') == InternalRequest(INTERNAL_RELOAD, False, '')


def test_internal_init_prompts_for_force():
    state = make_state([])
    type_text(state, '/init')
    assert state.on_key('ENTER') is None
    assert isinstance(state.mode, InternalPromptMode)

    result = state.on_key('y')
    assert result == InternalRequest(INTERNAL_INIT, True)
    assert isinstance(state.mode, SearchMode)


def test_internal_init_prompt_enter_uses_default():
    state = make_state([])
    type_text(state, '/init')
    state.on_key('ENTER')
    assert state.on_key('ENTER') == InternalRequest(INTERNAL_INIT, False)


def test_internal_init_inline_force_skips_prompt():
    state = make_state([])
    type_text(state, '/init --force')
    assert state.on_key('ENTER') == InternalRequest(INTERNAL_INIT, True)
    assert isinstance(state.mode, SearchMode)


def test_internal_prompt_cancel():
    state = make_state([])
    type_text(state, '/init')
    state.on_key('ENTER')
    state.on_key('ESC')
    assert isinstance(state.mode, SearchMode)
    assert last_info(state) == "Internal command canceled"


def test_unknown_internal_command():
    state = make_state([])
    type_text(state, '/bogus')
    assert state.on_key('ENTER') is None
    assert last_info(state) == "Unknown internal command '/bogus'. Available: /reload, /init"


def test_apply_catalog_clamps_selection():
    commands = [CommandEntry(name=name, template=f"echo {name}") for name in 'abcde']
    state = make_state(commands)
    state.on_key('UP')
    assert state.selected == 4

    state.apply_catalog(Catalog(commands[:2]))
    assert len(state.filtered) == 2
    assert state.selected == 0


def test_finish_internal_applies_result():
    state = make_state([])
    state.begin_internal(InternalRequest(INTERNAL_RELOAD))
    assert state.is_loading

    new_catalog = Catalog([CommandEntry(name='fresh', template='echo fresh')])
    state.finish_internal(InternalResult(new_catalog, ["Reloaded 1 commands"], None))
    assert not state.is_loading
    assert state.catalog is new_catalog
    assert last_info(state) == "Reloaded 1 commands"

    state.finish_internal(InternalResult(None, [], "reload failed: boom"))
    assert state.catalog is new_catalog
    assert list(state.session)[-1].kind == LINE_STDERR


def test_run_lifecycle_records_usage():
    usage = UsageStore()
    state = make_state([CommandEntry(name='hello', template='echo hello')], usage=usage)
    request = state.on_key('ENTER')

    state.begin_run(request)
    assert state.is_loading
    assert list(state.session)[-1].kind == LINE_COMMAND

    state.finish_run(request, RunResult(130, True))
    assert last_info(state) == "Interrupted by user (Escape)"
    assert usage.count('config::hello') == 1

    state.finish_run(request, RunResult(2, False))
    assert last_info(state) == "exit code: 2"
    assert usage.count('config::hello') == 2


def test_failed_spawn_skips_usage():
    usage = UsageStore()
    state = make_state([CommandEntry(name='hello', template='echo hello')], usage=usage)
    request = state.on_key('ENTER')
    state.begin_run(request)
    state.fail_run(OSError("no such shell"))
    assert not state.is_loading
    assert list(state.session)[-1].text == "execution failed: no such shell"
    assert usage.count('config::hello') == 0


def test_usage_ranking_uses_store():
    usage = UsageStore(counts={'config::zeta': 2})
    state = make_state([
        CommandEntry(name='alpha', template='echo a'),
        CommandEntry(name='zeta', template='echo z'),
    ], usage=usage)
    assert state.catalog.commands[state.filtered[0].index].name == 'zeta'

    disabled = make_state(
        [CommandEntry(name='alpha', template='echo a'), CommandEntry(name='zeta', template='echo z')],
        ranking=RankingSettings(usage_enabled=False),
        usage=usage,
    )
    assert disabled.catalog.commands[disabled.filtered[0].index].name == 'alpha'


def test_session_pane_scrolls_instead_of_selecting():
    state = make_state([CommandEntry(name='a', template='echo a'), CommandEntry(name='b', template='echo b')])
    for number in range(20):
        state.push_info(f"line {number}")
    state.session.set_visible(5)

    state.on_key('TAB')
    state.on_key('UP')
    assert state.session.scroll == 1
    assert state.selected == 0

    state.on_key('PGDN')
    assert state.session.scroll == 0


def test_copy_selected(monkeypatch):
    copied = []
    monkeypatch.setattr(app_mod.pyperclip, 'copy', copied.append)
    state = make_state([CommandEntry(name='hello', template='echo {{who}}')])
    state.on_key('CTRL_Y')
    assert copied == ['echo {{who}}']
    assert "Copied 'hello'" in last_info(state)


def test_copy_without_clipboard(monkeypatch):
    def broken(text):
        raise pyperclip.PyperclipException("no clipboard mechanism")

    monkeypatch.setattr(app_mod.pyperclip, 'copy', broken)
    state = make_state([CommandEntry(name='hello', template='echo hi')])
    state.on_key('CTRL_Y')
    assert "Clipboard unavailable" in list(state.session)[-1].text


def test_spinner_cycles():
    state = make_state([])
    state.start_loading('x')
    frames = set()
    for _ in range(len(app_mod.SPINNER_FRAMES)):
        frames.add(state.spinner_frame())
        state.tick_loading()
    assert frames == set(app_mod.SPINNER_FRAMES)


def test_unknown_mode_raises():
    state = make_state([])
    state.mode = object()
    with pytest.raises(TypeError):
        state.on_key('x')

"""
Application state machine

AppState owns the query, the filtered results, the active mode and the
session log. Keys come in as strings from fzc.terminal and on_key() answers
with what the launcher should do next: nothing, quit, run a command or run
an internal command.
"""

from collections import namedtuple

import pyperclip

from fzc import catalog as catalog_mod
from fzc.matcher import (
    ITEM_COMMAND,
    ITEM_INTERNAL,
    SearchItem,
    is_internal_query,
    rank_commands,
    rank_internal,
)
from fzc.model import (
    PARAM_FLAG,
    flag_value_token,
    has_unresolved_placeholders,
    parse_flag_input,
    render_template,
    requires_input,
    usage_key,
)
from fzc.session import LINE_COMMAND, LINE_INFO, LINE_STDERR, SessionLog

SPINNER_FRAMES = ('⠋', '⠙', '⠹', '⠸', '⠼', '⠴', '⠦', '⠧', '⠇', '⠏')

PANE_COMMANDS = 'commands'
PANE_SESSION = 'session'

PAGE_STEP = 10

QUIT = 'QUIT'

RunRequest = namedtuple(
    'RunRequest',
    ['display_name', 'command_line', 'working_dir', 'usage_key', 'return_to_ui'],
)
InternalRequest = namedtuple('InternalRequest', ['kind', 'force', 'name'])
InternalRequest.__new__.__defaults__ = (False, '')


def is_text_key(key):
    return len(key) == 1 and key.isprintable()


class SearchMode:
    """Typing a query and picking an entry"""

    def __repr__(self):
        return 'SearchMode()'


class ParamPromptMode:
    """Collecting the parameters of one catalog entry, one at a time"""

    def __init__(self, command_index, pending, values, return_to_ui):
        self.command_index = command_index
        self.pending = pending
        self.current = 0
        self.input = ''
        self.values = values
        self.return_to_ui = return_to_ui

    @property
    def param_index(self):
        return self.pending[self.current]

    def __repr__(self):
        return f"ParamPromptMode(command={self.command_index}, step={self.current + 1}/{len(self.pending)})"


class InternalPromptMode:
    """Asking the yes/no force question of an internal command"""

    def __init__(self, command_index):
        self.command_index = command_index
        self.input = ''

    def __repr__(self):
        return f"InternalPromptMode(command={self.command_index})"


class AppState:
    def __init__(self, catalog, usage):
        self.catalog = catalog
        self.usage = usage
        self.internal_commands = catalog_mod.INTERNAL_COMMANDS

        self.query = ''
        self.cursor = 0
        self.filtered = []
        self.selected = 0
        self.mode = SearchMode()
        self.session = SessionLog()
        self.active_pane = PANE_COMMANDS
        self.show_help = False

        self.is_loading = False
        self.loading_label = None
        self.spinner_index = 0

        self.refresh_filtered()
        self.push_info(f"Loaded {len(catalog)} commands")
        if catalog.config_path:
            self.push_info(f"Config: {catalog.config_path}")
        else:
            self.push_info("Config: none (providers only or defaults)")

    # --- key handling ---

    def on_key(self, key):
        if self.show_help:
            self.show_help = False
            if key in ('ESC', '?'):
                return None
            # Any other key closes help and is handled as usual

        if isinstance(self.mode, SearchMode):
            return self.on_search_key(key)
        if isinstance(self.mode, ParamPromptMode):
            return self.on_prompt_key(key)
        if isinstance(self.mode, InternalPromptMode):
            return self.on_internal_prompt_key(key)
        raise TypeError(f"Unknown mode: {self.mode!r}")

    def on_search_key(self, key):
        if key == '?':
            self.show_help = True
            return None

        if key == 'TAB':
            self.active_pane = PANE_SESSION if self.active_pane == PANE_COMMANDS else PANE_COMMANDS
            return None

        if key == 'CTRL_C':
            return QUIT

        if key == 'ESC':
            if not self.query:
                return QUIT
            self.set_query('')
            self.active_pane = PANE_COMMANDS
            return None

        if key in ('ENTER', 'ALT_ENTER'):
            if self.active_pane == PANE_SESSION:
                return None
            if is_internal_query(self.query):
                return self.prepare_selected_internal_command()
            return self.prepare_selected_command(return_to_ui=key == 'ENTER')

        if key == 'CTRL_Y':
            self.copy_selected()
            return None

        scroll_keys = {'UP': -1, 'CTRL_K': -1, 'DOWN': 1, 'CTRL_J': 1, 'PGUP': -PAGE_STEP, 'PGDN': PAGE_STEP}
        if key in scroll_keys:
            step = scroll_keys[key]
            if self.active_pane == PANE_SESSION:
                # Up scrolls back in history
                self.session.scroll_by(-step)
            else:
                self.move_selection(step)
            return None

        self.active_pane = PANE_COMMANDS
        if key == 'LEFT':
            self.cursor = max(0, self.cursor - 1)
        elif key == 'RIGHT':
            self.cursor = min(len(self.query), self.cursor + 1)
        elif key == 'HOME':
            self.cursor = 0
        elif key == 'END':
            self.cursor = len(self.query)
        elif key == 'BACKSPACE':
            if self.cursor > 0:
                self.cursor -= 1
                self.set_query(self.query[:self.cursor] + self.query[self.cursor + 1:], self.cursor)
        elif key == 'DELETE':
            if self.cursor < len(self.query):
                self.set_query(self.query[:self.cursor] + self.query[self.cursor + 1:], self.cursor)
        elif is_text_key(key):
            self.set_query(self.query[:self.cursor] + key + self.query[self.cursor:], self.cursor + 1)
        return None

    def on_prompt_key(self, key):
        prompt = self.mode
        entry = self.catalog.commands[prompt.command_index]
        param = entry.params[prompt.param_index]

        if key == 'ESC':
            self.mode = SearchMode()
            self.push_info("Parameter entry canceled")
            return None

        if key == 'BACKSPACE':
            prompt.input = prompt.input[:-1]
            return None

        if is_text_key(key):
            # A lone y/n keystroke answers a flag prompt right away
            if param.kind == PARAM_FLAG and not prompt.input and key.strip():
                answer = parse_flag_input(key, bool(param.default))
                if answer is not None:
                    prompt.values[param.name] = flag_value_token(param, answer)
                    return self.advance_prompt()
            prompt.input += key
            return None

        if key != 'ENTER':
            return None

        text = prompt.input.strip()
        if param.kind == PARAM_FLAG:
            answer = parse_flag_input(text, bool(param.default))
            if answer is None:
                prompt.input = ''
                self.push_info("Please enter y or n")
                return None
            prompt.values[param.name] = flag_value_token(param, answer)
        else:
            if text:
                value = text
            elif param.default is not None:
                value = param.default
            elif param.required:
                self.push_info(f"'{param.name}' is required")
                return None
            else:
                value = ''
            prompt.values[param.name] = value

        return self.advance_prompt()

    def advance_prompt(self):
        prompt = self.mode
        prompt.current += 1
        prompt.input = ''
        if prompt.current < len(prompt.pending):
            return None

        self.mode = SearchMode()
        return self.build_run_request(prompt.command_index, prompt.values, prompt.return_to_ui)

    def on_internal_prompt_key(self, key):
        prompt = self.mode
        command = self.internal_commands[prompt.command_index]

        if key == 'ESC':
            self.mode = SearchMode()
            self.push_info("Internal command canceled")
            return None

        if key == 'BACKSPACE':
            prompt.input = prompt.input[:-1]
            return None

        if is_text_key(key):
            if not prompt.input and key.strip():
                force = parse_flag_input(key, command.default_force)
                if force is not None:
                    self.mode = SearchMode()
                    return InternalRequest(command.kind, force)
            prompt.input += key
            return None

        if key != 'ENTER':
            return None

        force = parse_flag_input(prompt.input, command.default_force)
        if force is None:
            prompt.input = ''
            self.push_info("Please enter y or n")
            return None

        self.mode = SearchMode()
        return InternalRequest(command.kind, force)

    # --- preparing runs ---

    def prepare_selected_command(self, return_to_ui=True):
        index = self.current_command_index()
        if index is None:
            self.push_info("No command selected")
            return None

        entry = self.catalog.commands[index]
        values = {}
        pending = []

        for param_index, param in enumerate(entry.params):
            if param.kind == PARAM_FLAG:
                if param.value is not None:
                    values[param.name] = flag_value_token(param, param.value)
                else:
                    pending.append(param_index)
            else:
                if param.value is not None:
                    values[param.name] = param.value
                elif requires_input(param):
                    pending.append(param_index)
                elif param.default is not None:
                    values[param.name] = param.default

        if not pending:
            return self.build_run_request(index, values, return_to_ui)

        self.mode = ParamPromptMode(index, pending, values, return_to_ui)
        return None

    def build_run_request(self, index, values, return_to_ui):
        entry = self.catalog.commands[index]
        command_line = render_template(entry.template, values)

        if has_unresolved_placeholders(command_line):
            self.push_info(f"Command '{entry.name}' still has unresolved placeholders")
            return None

        self.set_query('')
        return RunRequest(entry.name, command_line, entry.working_dir, usage_key(entry), return_to_ui)

    def prepare_selected_internal_command(self):
        parsed = catalog_mod.parse_internal_command(self.query)
        if parsed is not None:
            kind, force, name = parsed
            if kind == catalog_mod.INTERNAL_RELOAD:
                return InternalRequest(kind)
            if kind == catalog_mod.INTERNAL_INIT and catalog_mod.has_force_token(self.query):
                return InternalRequest(kind, force)

        index = self.current_internal_index()
        if index is None:
            name = parsed[2] if parsed else ''
            self.push_info(catalog_mod.unknown_command_message(name))
            return None

        command = self.internal_commands[index]
        if command.kind == catalog_mod.INTERNAL_RELOAD:
            return InternalRequest(command.kind)

        self.mode = InternalPromptMode(index)
        return None

    # --- run lifecycle, driven by the launcher ---

    def begin_run(self, request):
        self.mode = SearchMode()
        self.push_command(request.command_line)
        if request.working_dir:
            self.push_info(f"working directory: {request.working_dir}")
        self.start_loading(request.display_name)

    def finish_run(self, request, result):
        if result.interrupted:
            self.push_info("Interrupted by user (Escape)")
        else:
            self.push_info(f"exit code: {result.exit_code}")
        self.stop_loading()
        self.record_usage(request.usage_key)

    def fail_run(self, error):
        self.push_error(f"execution failed: {error}")
        self.stop_loading()

    def begin_internal(self, request):
        self.mode = SearchMode()
        self.set_query('')
        label = {
            catalog_mod.INTERNAL_RELOAD: '/reload',
            catalog_mod.INTERNAL_INIT: '/init',
        }.get(request.kind, 'internal')
        self.start_loading(label)

    def finish_internal(self, result):
        if result.catalog is not None:
            self.apply_catalog(result.catalog)
        for message in result.messages:
            self.push_info(message)
        if result.error:
            self.push_error(result.error)
        self.stop_loading()

    def apply_catalog(self, catalog):
        """Swap in a freshly loaded catalog snapshot"""
        self.catalog = catalog
        self.refresh_filtered(reset_selection=False)

    # --- query and results ---

    def set_query(self, text, cursor=None):
        self.query = text
        self.cursor = len(text) if cursor is None else cursor
        self.refresh_filtered()

    def usage_boost(self, entry):
        ranking = self.catalog.ranking
        if not ranking.usage_enabled:
            return 0
        return self.usage.count(usage_key(entry)) * max(ranking.usage_weight, 0)

    def refresh_filtered(self, reset_selection=True):
        if is_internal_query(self.query):
            indices = rank_internal(self.internal_commands, self.query)
            self.filtered = [SearchItem(ITEM_INTERNAL, index) for index in indices]
        else:
            indices = rank_commands(
                self.catalog.commands,
                self.query,
                self.catalog.aliases,
                self.catalog.unaliased_providers,
                self.usage_boost,
            )
            self.filtered = [SearchItem(ITEM_COMMAND, index) for index in indices]

        if reset_selection or self.selected >= len(self.filtered):
            self.selected = 0

    def move_selection(self, step):
        if not self.filtered:
            self.selected = 0
            return
        self.selected = (self.selected + step) % len(self.filtered)

    def selected_item(self):
        if 0 <= self.selected < len(self.filtered):
            return self.filtered[self.selected]
        return None

    def current_command_index(self):
        item = self.selected_item()
        if item is not None and item.kind == ITEM_COMMAND:
            return item.index
        return None

    def current_internal_index(self):
        item = self.selected_item()
        if item is not None and item.kind == ITEM_INTERNAL:
            return item.index
        return None

    def copy_selected(self):
        """Copy the selected command template to the system clipboard"""
        index = self.current_command_index()
        if index is None:
            self.push_info("No command selected")
            return

        entry = self.catalog.commands[index]
        try:
            pyperclip.copy(entry.template)
        except pyperclip.PyperclipException as e:
            self.push_error(f"Clipboard unavailable: {e}")
            return
        self.push_info(f"📋 Copied '{entry.name}' to clipboard")

    # --- session log ---

    def push_line(self, kind, text):
        self.session.push(kind, text, follow=self.active_pane == PANE_COMMANDS)

    def push_info(self, text):
        self.push_line(LINE_INFO, text)

    def push_command(self, text):
        self.push_line(LINE_COMMAND, text)

    def push_error(self, text):
        self.push_line(LINE_STDERR, text)

    # --- loading indicator ---

    def start_loading(self, label):
        self.is_loading = True
        self.loading_label = label
        self.spinner_index = 0

    def tick_loading(self):
        if self.is_loading:
            self.spinner_index = (self.spinner_index + 1) % len(SPINNER_FRAMES)

    def stop_loading(self):
        self.is_loading = False
        self.loading_label = None

    def spinner_frame(self):
        return SPINNER_FRAMES[self.spinner_index % len(SPINNER_FRAMES)]

    def record_usage(self, key):
        self.usage.record(key)

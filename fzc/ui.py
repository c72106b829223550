"""
Screen rendering

Builds one full frame from the application state: session panel on top,
command list below it, then the search bar and a hint line (or the help
panel). Parameter and internal prompts are drawn as a popup over the frame.
"""

from collections import namedtuple

from fzc.ansi import DEFAULT_STYLE, parse_ansi, render_segments
from fzc.app import PANE_SESSION, InternalPromptMode, ParamPromptMode
from fzc.matcher import ITEM_INTERNAL
from fzc.model import PARAM_FLAG, display_name
from fzc.session import LINE_COMMAND, LINE_INFO, LINE_STDERR

RESET = '\033[0m'
DIM = '\033[90m'
CYAN = '\033[36m'
BRIGHT_CYAN = '\033[96m'
BLUE = '\033[94m'
YELLOW = '\033[93m'
RED = '\033[91m'
GREY = '\033[37m'
SELECTED = '\033[1;97;44m'
CURSOR = '\033[7m'

MIN_SESSION_ROWS = 3

SESSION_PREFIXES = {
    LINE_INFO: '• ',
    LINE_COMMAND: '$ ',
    LINE_STDERR: '! ',
}

HINT = "Enter run · Alt+Enter run & exit · Tab switch pane · Ctrl+Y copy · ? help · Esc quit"

HELP_ENTRIES = (
    ('Enter', 'Run selected command, output goes to the session panel'),
    ('Alt+Enter', 'Run selected command in the shell and exit'),
    ('↑/↓ Ctrl+K/J', 'Move selection or scroll the session panel'),
    ('PgUp/PgDn', 'Move by 10'),
    ('Tab', 'Switch between commands and session panel'),
    ('Ctrl+Y', 'Copy command template to clipboard'),
    (':alias query', 'Only show commands from one provider'),
    ('/reload /init', 'Internal commands'),
    ('Esc', 'Clear query, quit when empty, interrupt a running command'),
)

Layout = namedtuple('Layout', ['session_rows', 'command_rows', 'bottom_rows'])


def truncate(text, width, suffix='…'):
    if width <= 0:
        return ''
    if len(text) <= width:
        return text
    return text[:max(0, width - len(suffix))] + suffix[:width]


def fit_segments(segments, width):
    """Cut styled segments down to a visible width"""
    fitted = []
    remaining = width
    for text, style in segments:
        if remaining <= 0:
            break
        fitted.append((text[:remaining], style))
        remaining -= len(text[:remaining])
    return fitted or [('', DEFAULT_STYLE)]


def compute_layout(rows, show_help):
    bottom = 2 + (len(HELP_ENTRIES) + 1 if show_help else 0)
    remaining = max(2, rows - bottom)
    session = max(MIN_SESSION_ROWS, remaining // 3)
    session = min(session, remaining - 1)
    return Layout(session, remaining - session, bottom)


def panel_title(title, width, active):
    color = BRIGHT_CYAN if active else DIM
    text = truncate(f"── {title} ", width)
    return f"{color}{text}{'─' * max(0, width - len(text))}{RESET}"


def session_row(line, width):
    prefix = SESSION_PREFIXES.get(line.kind, '  ')
    if line.kind == LINE_COMMAND:
        return f"{BLUE}{truncate(prefix + line.text, width)}{RESET}"
    if line.kind == LINE_INFO:
        return f"{DIM}{truncate(prefix + line.text, width)}{RESET}"
    if line.kind == LINE_STDERR:
        prefix = f"{RED}{prefix}{RESET}"
    else:
        prefix = '  '
    # Child output keeps its own colors
    segments = fit_segments(parse_ansi(line.text), width - 2)
    return prefix + render_segments(segments)


def command_row(state, item, width, selected):
    if item.kind == ITEM_INTERNAL:
        command = state.internal_commands[item.index]
        badge, name, description = 'internal', command.name, command.description
    else:
        entry = state.catalog.commands[item.index]
        badge, name, description = state.catalog.badge(entry), display_name(entry), entry.description or ''

    plain = f" [{badge}] {name}"
    if description:
        plain += f" | {description}"
    plain = truncate(plain, width)

    if selected:
        return f"{SELECTED}{plain}{' ' * max(0, width - len(plain))}{RESET}"

    head = f" [{badge}] "
    rest = plain[len(head):]
    name_part, sep, desc_part = rest.partition(' | ')
    return f"{DIM}{head}{RESET}{CYAN}{name_part}{RESET}{GREY}{sep}{desc_part}{RESET}"


def search_bar(state, width):
    if state.is_loading:
        text = f" {state.spinner_frame()} Running {state.loading_label} (Esc to interrupt)"
        return f"{YELLOW}{truncate(text, width)}{RESET}"

    before = state.query[:state.cursor]
    under = state.query[state.cursor:state.cursor + 1] or ' '
    after = state.query[state.cursor + 1:]
    count = f"{DIM}  {len(state.filtered)}/{len(state.catalog)}{RESET}"
    return f"{BRIGHT_CYAN}🔍 {before}{CURSOR}{under}{RESET}{BRIGHT_CYAN}{after}{RESET}{count}"


def help_rows(width):
    rows = [f"{BLUE}⌨️  Keys:{RESET}"]
    for key, description in HELP_ENTRIES:
        rows.append(f"{CYAN}   {key:<16}{RESET}{GREY}- {truncate(description, max(0, width - 21))}{RESET}")
    return rows


def popup(state):
    """(title, body lines, input line) for the active prompt, or None"""
    mode = state.mode
    if isinstance(mode, ParamPromptMode):
        entry = state.catalog.commands[mode.command_index]
        param = entry.params[mode.param_index]
        title = f"{entry.name} ({mode.current + 1}/{len(mode.pending)})"
        body = [param.prompt]
        if param.kind == PARAM_FLAG:
            body.append(f"[y/n] default: {'y' if param.default else 'n'}")
        elif param.default is not None:
            body.append(f"default: {param.default}")
        elif param.placeholder:
            body.append(f"e.g. {param.placeholder}")
        if param.required:
            body.append("required")
        return title, body, mode.input

    if isinstance(mode, InternalPromptMode):
        command = state.internal_commands[mode.command_index]
        default = 'y' if command.default_force else 'n'
        return command.name, ["Overwrite existing config file?", f"[y/n] default: {default}"], mode.input

    return None


def popup_rows(title, body, text, width):
    inner = min(max(40, len(title) + 4, *(len(line) + 2 for line in body)), max(10, width - 4))
    top = f"╭─ {truncate(title, inner - 3)} "
    rows = [top + '─' * max(0, inner + 1 - len(top)) + '╮']
    for line in body:
        rows.append(f"│ {truncate(line, inner - 2):<{inner - 2}} │")
    field = truncate(f"> {text}", inner - 3)
    rows.append(f"│ {BRIGHT_CYAN}{field}{CURSOR} {RESET}{' ' * max(0, inner - 3 - len(field))} │")
    rows.append('╰' + '─' * inner + '╯')
    return rows, inner + 2


class Renderer:
    """Draws frames with absolute cursor positioning"""

    def __init__(self, terminal):
        self.terminal = terminal

    def draw(self, state):
        columns, rows = self.terminal.size()
        lines = compose(state, columns, rows)
        out = [f"\033[{row};1H{line}\033[K" for row, line in enumerate(lines, start=1)]
        self.terminal.write(''.join(out))


def compose(state, columns, rows):
    """Rows of the frame, top to bottom"""
    layout = compute_layout(rows, state.show_help)
    # Scrolling is bounded by the rows the session panel gets
    state.session.set_visible(layout.session_rows - 1)
    frame = []

    frame.append(panel_title("Session", columns, state.active_pane == PANE_SESSION))
    session_lines = state.session.window()[-(layout.session_rows - 1):] if layout.session_rows > 1 else []
    for line in session_lines:
        frame.append(session_row(line, columns))
    frame.extend([''] * (layout.session_rows - len(frame)))

    title = f"Commands ({len(state.filtered)})"
    frame.append(panel_title(title, columns, state.active_pane != PANE_SESSION))
    list_rows = layout.command_rows - 1
    if not state.filtered:
        if list_rows > 0:
            frame.append(f"{YELLOW}📭 No commands match your query.{RESET}")
    else:
        offset = max(0, state.selected - list_rows + 1)
        for position in range(offset, min(len(state.filtered), offset + list_rows)):
            frame.append(command_row(state, state.filtered[position], columns, position == state.selected))
    frame.extend([''] * (layout.session_rows + layout.command_rows - len(frame)))

    frame.append(search_bar(state, columns))
    if state.show_help:
        frame.extend(help_rows(columns))
    frame.append(f"{DIM}{truncate(HINT, columns)}{RESET}")
    frame = frame[:rows]

    prompt = popup(state)
    if prompt is not None:
        box, box_width = popup_rows(*prompt, columns)
        top = max(0, (len(frame) - len(box)) // 2)
        left = ' ' * max(0, (columns - box_width) // 2)
        for offset, row in enumerate(box):
            if top + offset < len(frame):
                frame[top + offset] = left + f"{BRIGHT_CYAN}{row}{RESET}"

    return frame

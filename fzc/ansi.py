"""
ANSI color-code interpreter

Turns one captured output line into (text, Style) segments so colored
output of a child process can be re-rendered inside the session panel.
Only SGR sequences (ESC [ params m) change the style; every other escape
sequence is dropped.
"""

from collections import namedtuple

ESC = '\x1b'

Style = namedtuple('Style', ['fg', 'bg', 'bold', 'italic', 'underline'])
Style.__new__.__defaults__ = (None, None, False, False, False)

DEFAULT_STYLE = Style()


def _clamp_byte(value):
    return max(0, min(255, value))


def parse_ansi(line, default=DEFAULT_STYLE):
    """Split a raw line into styled segments, carrying the style across sequences"""
    segments = []
    style = default
    buffer = []
    i = 0
    length = len(line)

    while i < length:
        char = line[i]
        if char != ESC:
            buffer.append(char)
            i += 1
            continue

        if buffer:
            segments.append((''.join(buffer), style))
            buffer = []

        if i + 1 < length and line[i + 1] == '[':
            # CSI: parameter/intermediate bytes then one final byte
            j = i + 2
            while j < length and not ('\x40' <= line[j] <= '\x7e'):
                j += 1
            if j < length and line[j] == 'm':
                style = apply_sgr(line[i + 2:j], style, default)
            i = j + 1
        elif i + 1 < length and line[i + 1] == ']':
            # OSC: runs until BEL or ST
            j = i + 2
            while j < length and line[j] != '\x07' and line[j:j + 2] != ESC + '\\':
                j += 1
            i = j + (2 if line[j:j + 2] == ESC + '\\' else 1)
        else:
            # Two-character escape (ESC 7, ESC =, ...) or a lone ESC
            i += 2

    if buffer:
        segments.append((''.join(buffer), style))

    if not segments:
        segments.append(('', default))
    return segments


def apply_sgr(params, style, default=DEFAULT_STYLE):
    """Apply one SGR parameter string (e.g. '1;38;5;208') to a style"""
    codes = []
    for part in params.split(';'):
        try:
            codes.append(int(part))
        except ValueError:
            continue

    if not codes:
        return default

    i = 0
    while i < len(codes):
        code = codes[i]
        if code == 0:
            style = default
        elif code == 1:
            style = style._replace(bold=True)
        elif code == 3:
            style = style._replace(italic=True)
        elif code == 4:
            style = style._replace(underline=True)
        elif code == 22:
            style = style._replace(bold=False)
        elif code == 23:
            style = style._replace(italic=False)
        elif code == 24:
            style = style._replace(underline=False)
        elif 30 <= code <= 37:
            style = style._replace(fg=code - 30)
        elif 90 <= code <= 97:
            style = style._replace(fg=code - 90 + 8)
        elif 40 <= code <= 47:
            style = style._replace(bg=code - 40)
        elif 100 <= code <= 107:
            style = style._replace(bg=code - 100 + 8)
        elif code == 39:
            style = style._replace(fg=default.fg)
        elif code == 49:
            style = style._replace(bg=default.bg)
        elif code in (38, 48):
            color = None
            if i + 2 < len(codes) and codes[i + 1] == 5:
                color = _clamp_byte(codes[i + 2])
                i += 2
            elif i + 4 < len(codes) and codes[i + 1] == 2:
                color = tuple(_clamp_byte(value) for value in codes[i + 2:i + 5])
                i += 4
            if color is not None:
                style = style._replace(fg=color) if code == 38 else style._replace(bg=color)
        # anything else is ignored
        i += 1

    return style


def _color_params(color, background):
    if isinstance(color, tuple):
        return [48 if background else 38, 2] + list(color)
    if color < 8:
        return [(40 if background else 30) + color]
    if color < 16:
        return [(100 if background else 90) + color - 8]
    return [48 if background else 38, 5, color]


def style_to_sgr(style):
    """Encode a style as a single SGR sequence starting from a reset"""
    params = [0]
    if style.bold:
        params.append(1)
    if style.italic:
        params.append(3)
    if style.underline:
        params.append(4)
    if style.fg is not None:
        params.extend(_color_params(style.fg, False))
    if style.bg is not None:
        params.extend(_color_params(style.bg, True))
    return f"{ESC}[{';'.join(str(param) for param in params)}m"


def render_segments(segments):
    """Re-encode parsed segments for the terminal, ending with a reset"""
    return ''.join(style_to_sgr(style) + text for text, style in segments) + f"{ESC}[0m"


def strip_ansi(line):
    return ''.join(text for text, _ in parse_ansi(line))

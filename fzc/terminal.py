"""
Terminal handling

Raw-mode keyboard input with named keys and alternate screen management.
"""

import logging
import os
import select
import shutil
import sys
import time

# Cross-platform terminal handling
try:
    import termios
    import tty
    TERMIOS_AVAILABLE = True
except ImportError:
    TERMIOS_AVAILABLE = False

try:
    import msvcrt
    MSVCRT_AVAILABLE = True
except ImportError:
    MSVCRT_AVAILABLE = False
    msvcrt = None

logger = logging.getLogger(__name__)

ALT_SCREEN_ON = '\033[?1049h'
ALT_SCREEN_OFF = '\033[?1049l'
HIDE_CURSOR = '\033[?25l'
SHOW_CURSOR = '\033[?25h'
RESET = '\033[0m'

ESCAPE_WAIT = 0.05

CONTROL_KEYS = {
    '\r': 'ENTER',
    '\n': 'CTRL_J',
    '\t': 'TAB',
    '\x7f': 'BACKSPACE',
    '\x08': 'BACKSPACE',
    '\x03': 'CTRL_C',
    '\x0b': 'CTRL_K',
    '\x19': 'CTRL_Y',
}

CSI_FINAL_KEYS = {
    'A': 'UP',
    'B': 'DOWN',
    'C': 'RIGHT',
    'D': 'LEFT',
    'H': 'HOME',
    'F': 'END',
}

CSI_TILDE_KEYS = {
    '1': 'HOME',
    '7': 'HOME',
    '4': 'END',
    '8': 'END',
    '3': 'DELETE',
    '5': 'PGUP',
    '6': 'PGDN',
}

WINDOWS_EXTENDED_KEYS = {
    'H': 'UP',
    'P': 'DOWN',
    'K': 'LEFT',
    'M': 'RIGHT',
    'G': 'HOME',
    'O': 'END',
    'S': 'DELETE',
    'I': 'PGUP',
    'Q': 'PGDN',
}


def decode_control(ch):
    """Key name for a single character read in raw mode"""
    if ch in CONTROL_KEYS:
        return CONTROL_KEYS[ch]
    if ch.isprintable():
        return ch
    return None


def decode_csi(body):
    """Key name for the part of a CSI sequence after ESC [, or None"""
    if not body:
        return None
    final = body[-1]
    params = body[:-1]
    if final == '~':
        return CSI_TILDE_KEYS.get(params.split(';')[0])
    # Modified arrows arrive as 1;5A and friends
    return CSI_FINAL_KEYS.get(final)


def utf8_length(first_byte):
    if first_byte >= 0xF0:
        return 4
    if first_byte >= 0xE0:
        return 3
    if first_byte >= 0xC0:
        return 2
    return 1


class Terminal:
    """Owns the controlling terminal while the picker is on screen"""

    def __init__(self, stdin=None, stdout=None):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self.fd = self.stdin.fileno()
        self.old_settings = None
        self.active = False

    def __enter__(self):
        self.enter()
        return self

    def __exit__(self, *args):
        self.leave()

    def enter(self):
        if TERMIOS_AVAILABLE:
            self.old_settings = termios.tcgetattr(self.fd)
            tty.setraw(self.fd)
        self.write(ALT_SCREEN_ON + HIDE_CURSOR)
        self.active = True

    def leave(self):
        if not self.active:
            return
        self.write(RESET + SHOW_CURSOR + ALT_SCREEN_OFF)
        if TERMIOS_AVAILABLE and self.old_settings is not None:
            termios.tcsetattr(self.fd, termios.TCSADRAIN, self.old_settings)
        self.active = False

    def write(self, text):
        self.stdout.write(text)
        self.stdout.flush()

    def size(self):
        """(columns, rows)"""
        size = shutil.get_terminal_size((80, 24))
        return size.columns, size.lines

    # --- input ---

    def read_key(self, timeout=0.1):
        """Next key name or character, or None when nothing arrives in time"""
        if MSVCRT_AVAILABLE and not TERMIOS_AVAILABLE:
            return self._read_key_windows(timeout)

        if not self._wait(timeout):
            return None

        data = self._read_bytes(1)
        if not data:
            return None

        first = data[0]
        if first == 0x1b:
            return self._read_escape()

        length = utf8_length(first)
        if length > 1:
            data += self._read_bytes(length - 1)
        return decode_control(data.decode('utf-8', errors='replace'))

    def _wait(self, timeout):
        try:
            return bool(select.select([self.fd], [], [], timeout)[0])
        except (InterruptedError, OSError):
            return False

    def _read_bytes(self, count):
        try:
            return os.read(self.fd, count)
        except OSError as e:
            logger.debug("Keyboard read failed: %s", e)
            return b''

    def _read_escape(self):
        if not self._wait(ESCAPE_WAIT):
            return 'ESC'

        nxt = self._read_bytes(1)
        if nxt == b'\r':
            return 'ALT_ENTER'
        if nxt == b'O':
            # SS3 form sent by some terminals for arrows and Home/End
            if not self._wait(ESCAPE_WAIT):
                return None
            return CSI_FINAL_KEYS.get(self._read_bytes(1).decode('ascii', errors='replace'))
        if nxt != b'[':
            return None

        body = ''
        while self._wait(ESCAPE_WAIT):
            ch = self._read_bytes(1).decode('ascii', errors='replace')
            body += ch
            if not ch or 0x40 <= ord(ch) <= 0x7e:
                break
        return decode_csi(body)

    def _read_key_windows(self, timeout):
        deadline = time.monotonic() + timeout
        while not msvcrt.kbhit():
            if time.monotonic() >= deadline:
                return None
            time.sleep(0.01)

        ch = msvcrt.getwch()
        if ch in ('\x00', '\xe0'):
            return WINDOWS_EXTENDED_KEYS.get(msvcrt.getwch())
        if ch == '\x1b':
            return 'ESC'
        return decode_control(ch)

"""Bounded session log: commands run and their captured output"""

from collections import deque, namedtuple

MAX_SESSION_LINES = 600

LINE_INFO = 'info'
LINE_COMMAND = 'command'
LINE_STDOUT = 'stdout'
LINE_STDERR = 'stderr'

SessionLine = namedtuple('SessionLine', ['kind', 'text'])


class SessionLog:
    """Append-only, FIFO-evicting log with a scroll offset counted from the bottom"""

    def __init__(self, capacity=MAX_SESSION_LINES):
        self.capacity = capacity
        self.lines = deque(maxlen=capacity)
        self.scroll = 0
        self.visible = 1

    def __len__(self):
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    def push(self, kind, text, follow=True):
        """Append a line; follow=True snaps the view back to the newest line"""
        self.lines.append(SessionLine(kind, text))
        if follow:
            self.scroll = 0
        elif self.scroll > 0:
            # Keep a scrolled-back view on the same lines
            self.scroll += 1
        self.clamp()

    def max_scroll(self):
        return max(0, len(self.lines) - self.visible)

    def clamp(self):
        self.scroll = max(0, min(self.scroll, self.max_scroll()))

    def set_visible(self, rows):
        self.visible = max(1, rows)
        self.clamp()

    def scroll_by(self, delta):
        """Positive delta scrolls back towards older lines"""
        self.scroll += delta
        self.clamp()

    def window(self):
        """Lines currently on screen, oldest first"""
        end = len(self.lines) - self.scroll
        start = max(0, end - self.visible)
        return [self.lines[index] for index in range(start, end)]

"""
Running shell commands

Two ways to run a rendered command line: inherited (the child owns the
terminal and fzc exits with its code) and streamed (stdout and stderr are
captured line by line into the session log while the UI stays up).
"""

import logging
import os
import queue
import subprocess
import threading
import time
from collections import namedtuple

logger = logging.getLogger(__name__)

INTERRUPTED_EXIT_CODE = 130
DRAIN_TIMEOUT = 0.01
DRAIN_DEADLINE = 0.25

STREAM_STDOUT = 'stdout'
STREAM_STDERR = 'stderr'

RunResult = namedtuple('RunResult', ['exit_code', 'interrupted'])


class SpawnError(Exception):
    """The shell could not be started"""


def shell_argv(command_line):
    """argv that hands the whole line to the platform shell"""
    if os.name == 'nt':
        return ['cmd', '/C', command_line]
    return ['sh', '-c', command_line]


def child_env(base=None):
    """Environment for every child, asking tools to keep their colors"""
    env = dict(os.environ if base is None else base)
    env['CLICOLOR_FORCE'] = '1'
    env['FORCE_COLOR'] = '1'
    if not env.get('TERM'):
        env['TERM'] = 'xterm-256color'
    return env


def normalize_exit_code(returncode):
    """Exit code as a shell would report it; death by signal N becomes 128+N"""
    if returncode is None:
        return 1
    if returncode < 0:
        return 128 - returncode
    return returncode


def run_inherited(command_line, working_dir=None):
    """Run with the terminal handed over; returns the exit code"""
    logger.info("Running inherited: %s", command_line)
    try:
        process = subprocess.Popen(shell_argv(command_line), cwd=working_dir, env=child_env())
    except OSError as e:
        raise SpawnError(str(e)) from e

    while True:
        try:
            return normalize_exit_code(process.wait())
        except KeyboardInterrupt:
            # The child got the same SIGINT; wait for it to finish
            continue


def _pump(stream, kind, events):
    try:
        for raw in iter(stream.readline, b''):
            events.put((kind, raw.decode('utf-8', errors='replace').rstrip('\r\n')))
    except (OSError, ValueError) as e:
        logger.debug("Reader for %s stopped: %s", kind, e)
    finally:
        stream.close()
        events.put((kind, None))


def run_streamed(command_line, working_dir, on_line, should_cancel=None, on_tick=None, poll_interval=0.02):
    """
    Run while capturing output.

    on_line(kind, text) is called on the calling thread for each captured line,
    kind being 'stdout' or 'stderr'. should_cancel() is polled between lines; when
    it returns True the child is killed and the result is flagged as interrupted.
    on_tick() is called once per poll so the caller can redraw.
    """
    logger.info("Running streamed: %s", command_line)
    try:
        process = subprocess.Popen(
            shell_argv(command_line),
            cwd=working_dir,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=child_env(),
        )
    except OSError as e:
        raise SpawnError(str(e)) from e

    events = queue.Queue()
    readers = [
        threading.Thread(target=_pump, args=(process.stdout, STREAM_STDOUT, events), daemon=True),
        threading.Thread(target=_pump, args=(process.stderr, STREAM_STDERR, events), daemon=True),
    ]
    for reader in readers:
        reader.start()

    finished = set()

    def deliver(timeout):
        try:
            kind, text = events.get(timeout=timeout)
        except queue.Empty:
            return False
        if text is None:
            finished.add(kind)
        else:
            on_line(kind, text)
        return True

    while True:
        if should_cancel is not None and should_cancel():
            logger.info("Killing child %s on user request", process.pid)
            _kill(process)
            process.wait()
            _drain(deliver, finished, len(readers), on_tick)
            if on_tick is not None:
                on_tick()
            return RunResult(INTERRUPTED_EXIT_CODE, True)

        while deliver(0):
            pass
        if on_tick is not None:
            on_tick()

        if process.poll() is not None:
            break

        if deliver(poll_interval) and on_tick is not None:
            on_tick()

    # Output written right before exit may still be in flight
    _drain(deliver, finished, len(readers), on_tick)

    exit_code = normalize_exit_code(process.returncode)
    logger.info("Child exited with %s", exit_code)
    return RunResult(exit_code, False)


def _drain(deliver, finished, reader_count, on_tick):
    """Deliver what the readers still hold; a stream kept open by a grandchild is abandoned"""
    deadline = time.monotonic() + DRAIN_DEADLINE
    while len(finished) < reader_count and time.monotonic() < deadline:
        deliver(DRAIN_TIMEOUT)
        if on_tick is not None:
            on_tick()
    while deliver(0):
        pass


def _kill(process):
    try:
        process.kill()
    except OSError as e:
        logger.debug("Kill failed: %s", e)


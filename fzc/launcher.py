"""
Interactive launcher loop

Wires the terminal, the state machine, the renderer, the process runner
and the internal-command worker together.
"""

import logging
import queue
import sys
import threading

from fzc import catalog as catalog_mod
from fzc import runner
from fzc.app import QUIT, InternalRequest, RunRequest
from fzc.session import LINE_STDERR, LINE_STDOUT
from fzc.ui import Renderer

logger = logging.getLogger(__name__)

KEY_POLL_TIMEOUT = 0.1
WORKER_POLL_TIMEOUT = 0.025


class FzcLauncher:
    def __init__(self, state, terminal, runtime):
        self.state = state
        self.terminal = terminal
        self.runtime = runtime
        self.renderer = Renderer(terminal)

    def interactive_mode(self):
        """Main loop; returns the process exit code"""
        with self.terminal:
            while True:
                self.renderer.draw(self.state)
                key = self.terminal.read_key(KEY_POLL_TIMEOUT)
                if key is None:
                    continue

                result = self.state.on_key(key)
                if result is None:
                    continue
                if result == QUIT:
                    return 0

                if isinstance(result, RunRequest):
                    if not result.return_to_ui:
                        return self.run_command_and_exit(result)
                    self.run_in_session(result)
                elif isinstance(result, InternalRequest):
                    self.run_internal(result)
                else:
                    raise TypeError(f"Unexpected key result: {result!r}")

    def run_command_and_exit(self, request):
        """Hand the terminal to the command and exit with its status"""
        self.terminal.leave()
        print(f"\033[96m🚀 {request.display_name}\033[0m")
        print(f"\033[90m$ {request.command_line}\033[0m")
        if request.working_dir:
            print(f"\033[90mworking directory: {request.working_dir}\033[0m")
        sys.stdout.flush()

        try:
            exit_code = runner.run_inherited(request.command_line, request.working_dir)
        except runner.SpawnError as e:
            print(f"\033[91m❌ execution failed: {e}\033[0m")
            return 1

        print(f"\033[90mexit code: {exit_code}\033[0m")
        self.state.record_usage(request.usage_key)
        return exit_code

    def run_in_session(self, request):
        """Stream the command's output into the session panel"""
        state = self.state
        state.begin_run(request)
        self.renderer.draw(state)

        def on_line(kind, text):
            state.push_line(LINE_STDERR if kind == runner.STREAM_STDERR else LINE_STDOUT, text)

        def should_cancel():
            return self.terminal.read_key(0) == 'ESC'

        def on_tick():
            state.tick_loading()
            self.renderer.draw(state)

        try:
            result = runner.run_streamed(
                request.command_line,
                request.working_dir,
                on_line,
                should_cancel=should_cancel,
                on_tick=on_tick,
            )
        except runner.SpawnError as e:
            logger.warning("Could not start %r: %s", request.command_line, e)
            state.fail_run(e)
            return

        state.finish_run(request, result)

    def run_internal(self, request):
        """Run /reload or /init on a worker thread, animating until it reports back"""
        state = self.state
        state.begin_internal(request)

        results = queue.Queue(maxsize=1)

        def work():
            try:
                result = catalog_mod.run_internal_task(self.runtime, request.kind, request.force, request.name)
            except Exception as e:
                logger.exception("Internal command %s crashed", request.kind)
                result = catalog_mod.InternalResult(None, [], f"{request.kind} failed: {e}")
            results.put(result)

        threading.Thread(target=work, name=f"fzc-{request.kind}", daemon=True).start()

        while True:
            self.renderer.draw(state)
            try:
                result = results.get(timeout=WORKER_POLL_TIMEOUT)
            except queue.Empty:
                state.tick_loading()
                continue
            break

        state.finish_internal(result)

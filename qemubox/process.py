import logging
import signal
import subprocess
import threading
from contextlib import contextmanager
from time import sleep

from .exceptions import ExecuteError

logger = logging.getLogger(__name__)

# QEMU forks into the background after a detached launch and only then
# writes its pidfile.
DETACH_GRACE = 5


class Interrupt:
    """Records that the user interrupted a running command.

    The runner only consults the flag, to tell a user abort apart from a
    failed command; it never kills the child.
    """

    def __init__(self):
        self.interrupted = False

    def set(self):
        self.interrupted = True

    @contextmanager
    def trap(self):
        def handler(signum, frame):
            logger.info('Interrupted; waiting for the command to finish ...')
            self.set()

        previous = signal.signal(signal.SIGINT, handler)
        try:
            yield self
        finally:
            signal.signal(signal.SIGINT, previous)


def normalize(output):
    return output.decode('utf8', errors='replace').replace('\r\n', '\n')


class Runner:
    def __init__(self, detach_grace=DETACH_GRACE):
        self.detach_grace = detach_grace

    def execute(self, *cmd, detach=False, interrupt=None, with_stderr=False):
        cmd = [str(arg) for arg in cmd]
        logger.debug('Running %r (detach=%s)', cmd, detach)

        if detach:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
            # reap the child once it exits so its pid stops resolving
            threading.Thread(target=proc.wait, daemon=True).start()
            sleep(self.detach_grace)
            return

        if interrupt is None:
            interrupt = Interrupt()

        proc = subprocess.run(cmd, capture_output=True)
        stdout = normalize(proc.stdout)
        stderr = normalize(proc.stderr)

        for line in stdout.splitlines():
            logger.debug('stdout: %s', line)
        for line in stderr.splitlines():
            logger.debug('stderr: %s', line)

        if proc.returncode != 0:
            if not interrupt.interrupted:
                raise ExecuteError(cmd, stdout=stdout, stderr=stderr)
            logger.info(
                '%s exited with %d after an interrupt', cmd[0], proc.returncode
            )

        if with_stderr:
            return stdout + ' ' + stderr
        return stdout

import enum
import logging
import os

logger = logging.getLogger(__name__)


class State(enum.Enum):
    NOT_CREATED = 'not_created'
    STOPPED = 'stopped'
    RUNNING = 'running'


def classify(is_running, is_created):
    # running implies created, so the existence check is only needed when
    # the instance is not running
    if is_running():
        return State.RUNNING
    if is_created():
        return State.STOPPED
    return State.NOT_CREATED


def read_pidfile(path):
    try:
        text = path.read_text().strip()
    except FileNotFoundError:
        return None

    try:
        pid = int(text)
    except ValueError:
        logger.debug('Ignoring malformed pidfile %s: %r', path, text)
        return None

    if pid <= 0:
        return None
    return pid


def pid_alive(pid):
    try:
        os.getpgid(pid)
    except ProcessLookupError:
        logger.debug('Process %d is gone', pid)
        return False
    return True

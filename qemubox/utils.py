import logging
import socket
from time import sleep, time

from .exceptions import WaitTimeout

logger = logging.getLogger(__name__)


def waitfor(condition, help=None, timeout=10, poll_interval=0.1):
    if not help:
        help = (condition.__doc__ or repr(condition)).strip()
    expires = time() + timeout
    while time() < expires:
        rv = condition()
        if rv:
            logger.debug('Polling for %s successful: %r.', help, rv)
            return rv
        sleep(poll_interval)

    raise WaitTimeout(f'Timeout expired waiting for {help}')


def ssh_banner(port):
    try:
        with socket.create_connection(('localhost', port), timeout=1) as sock:
            return sock.recv(3) == b'SSH'
    except OSError as e:
        logger.debug('No SSH on port %d yet: %s', port, e)
        return False


def wait_for_ssh(port, timeout=10):
    waitfor(lambda: ssh_banner(port), f'SSH on port {port}', timeout=timeout)

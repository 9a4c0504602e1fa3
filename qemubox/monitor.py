import logging
import os
import socket
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5

# sockaddr_un.sun_path is 108 bytes on Linux and 104 on macOS
MAX_SOCKET_PATH = 100


class TcpEndpoint:
    def __init__(self, port):
        self.port = int(port)

    def __repr__(self):
        return f'<TcpEndpoint localhost:{self.port}>'

    def __eq__(self, other):
        return isinstance(other, TcpEndpoint) and other.port == self.port

    def chardev_options(self):
        return [('port', self.port), ('host', 'localhost'), ('ipv4', 'on')]

    def socat_address(self):
        return f'tcp:localhost:{self.port}'

    def connect(self, timeout=CONNECT_TIMEOUT):
        sock = socket.create_connection(('localhost', self.port), timeout)
        sock.settimeout(None)
        return sock


class UnixEndpoint:
    def __init__(self, path):
        self.path = Path(path)

    def __repr__(self):
        return f'<UnixEndpoint {self.path}>'

    def __eq__(self, other):
        return isinstance(other, UnixEndpoint) and other.path == self.path

    def chardev_options(self):
        return [('path', self.path)]

    def socat_address(self):
        return f'unix-connect:{self.path}'

    def connect(self, timeout=None):
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            if len(os.fsencode(self.path)) < MAX_SOCKET_PATH:
                sock.connect(str(self.path))
            else:
                with tempfile.TemporaryDirectory() as tmp:
                    link_path = Path(tmp) / 'sock'
                    link_path.symlink_to(self.path)
                    sock.connect(str(link_path))
        except OSError:
            sock.close()
            raise
        return sock


def endpoint(port, path):
    if port is not None:
        return TcpEndpoint(port)
    return UnixEndpoint(path)


class Monitor:
    """Line-oriented connection to the QEMU human monitor."""

    def __init__(self, endpoint):
        self.endpoint = endpoint

    def command(self, line):
        logger.debug('Connecting to monitor at %r ...', self.endpoint)
        with self.endpoint.connect() as sock:
            logger.debug('Sending monitor command: %s', line)
            sock.sendall(f'{line}\n'.encode('utf8'))
            sock.shutdown(socket.SHUT_WR)

            chunks = []
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)

        response = b''.join(chunks).decode('utf8', errors='replace')
        logger.debug('Monitor response: %r', response)
        return response

    def powerdown(self):
        return self.command('system_powerdown')

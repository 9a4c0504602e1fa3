import os
import shutil
import socket
import subprocess
import tempfile
import threading
from pathlib import Path

import pytest

from qemubox.configs import LaunchConfig
from qemubox.instances import Instance
from qemubox.store import Store

BASE_IMAGE = '/images/base.qcow2'


class FakeRunner:
    """Records commands instead of running them.

    ``qemu-img`` leaves an empty image behind and a launch writes the pid of
    the test process, which is alive, into the pidfile.
    """

    def __init__(self):
        self.calls = []

    def execute(self, *cmd, detach=False, interrupt=None, with_stderr=False):
        cmd = [str(arg) for arg in cmd]
        self.calls.append(cmd)

        if cmd[0] == 'qemu-img':
            Path(cmd[-1]).touch()

        elif cmd[0].startswith('qemu-system-'):
            pid_path = Path(cmd[cmd.index('-pidfile') + 1])
            pid_path.write_text(f'{os.getpid()}\n')

        return ''

    @property
    def launches(self):
        return [cmd for cmd in self.calls if cmd[0].startswith('qemu-system-')]


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def store(tmp_path, runner):
    # unix socket paths must stay short
    runtime = Path(tempfile.mkdtemp(prefix='qb-'))
    try:
        yield Store(tmp_path / 'data', runtime, runner=runner)
    finally:
        shutil.rmtree(runtime)


@pytest.fixture
def firmware_dir(tmp_path):
    path = tmp_path / 'firmware'
    path.mkdir()
    (path / 'edk2-aarch64-code.fd').write_bytes(b'code\x00\x01')
    (path / 'edk2-arm-vars.fd').write_bytes(b'vars\x00\x02')
    return path


@pytest.fixture
def config():
    return LaunchConfig(
        arch='x86_64',
        machine='q35',
        cpu='qemu64',
        smp=2,
        memory='1G',
        net_device='virtio-net-pci',
        image_path=BASE_IMAGE,
        qemu_dir='/nonexistent',
    )


@pytest.fixture
def aarch64_config(firmware_dir):
    return LaunchConfig(
        arch='aarch64',
        machine='virt,highmem=off',
        cpu='cortex-a72',
        image_path=BASE_IMAGE,
        qemu_dir=firmware_dir,
    )


@pytest.fixture
def instance(store, config):
    return Instance.create(store, config)


@pytest.fixture
def dead_pid():
    proc = subprocess.Popen(['true'])
    proc.wait()
    return proc.pid


class FakeMonitor:
    """Accepts one connection and records what the client sent."""

    banner = b"QEMU 8.2.0 monitor - type 'help' for more information\n(qemu) "

    def __init__(self, sock):
        self.sock = sock
        self.received = None
        self.on_receive = None
        self.thread = threading.Thread(target=self.serve, daemon=True)

    def serve(self):
        conn, _ = self.sock.accept()
        with conn:
            conn.sendall(self.banner)
            chunks = []
            while True:
                chunk = conn.recv(1024)
                if not chunk:
                    break
                chunks.append(chunk)
            self.received = b''.join(chunks)
            if self.on_receive:
                self.on_receive(self.received)
            conn.sendall(self.received + b'(qemu) ')

    def __enter__(self):
        self.thread.start()
        return self

    def __exit__(self, *exc_info):
        self.thread.join(timeout=5)
        self.sock.close()


@pytest.fixture
def unix_monitor():
    def listen(path):
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.bind(str(path))
        sock.listen(1)
        return FakeMonitor(sock)

    return listen


@pytest.fixture
def tcp_monitor():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    sock.listen(1)
    return FakeMonitor(sock)

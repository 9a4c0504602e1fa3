import logging

import yaml

from . import qemu
from .exceptions import ConfigError

logger = logging.getLogger(__name__)

OPTIONS = [
    'arch',
    'machine',
    'cpu',
    'smp',
    'memory',
    'net_device',
    'ssh_port',
    'ports',
    'extra_netdev_args',
    'control_port',
    'debug_port',
    'no_daemonize',
    'extra_qemu_args',
    'image_path',
    'qemu_dir',
]


def load_file(path):
    with open(path) as f:
        content = yaml.safe_load(f)

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f'{path}: expected a mapping of options')

    logger.debug('Loaded config from %s: %r', path, content)
    return content


class LaunchConfig:
    """Everything needed to import and launch an instance.

    Options left unset fall back to defaults derived from the target
    architecture and the host kernel.
    """

    def __init__(self, **options):
        unknown = sorted(set(options) - set(OPTIONS))
        if unknown:
            raise ConfigError(f'Unknown options: {", ".join(unknown)}')

        get = options.get
        self.arch = get('arch') or qemu.host_arch()
        self.machine = get('machine') or qemu.default_machine(self.arch)
        self.cpu = get('cpu') or qemu.default_cpu(self.arch)
        self.smp = str(get('smp') or 2)
        self.memory = str(get('memory') or '4G')
        self.net_device = (
            get('net_device') or qemu.default_net_device(self.arch)
        )
        self.ssh_port = self._port(get('ssh_port') or 50022, 'ssh_port')
        self.ports = [str(rule) for rule in get('ports') or []]
        self.extra_netdev_args = get('extra_netdev_args')
        self.control_port = self._port(get('control_port'), 'control_port')
        self.debug_port = self._port(get('debug_port'), 'debug_port')
        self.no_daemonize = bool(get('no_daemonize'))
        self.extra_qemu_args = [
            str(arg) for arg in get('extra_qemu_args') or []
        ]
        self.image_path = get('image_path')
        self.qemu_dir = get('qemu_dir') or qemu.default_firmware_dir()

    @classmethod
    def load(cls, path=None, **overrides):
        options = load_file(path) if path else {}
        options.update(
            (key, value) for key, value in overrides.items()
            if value is not None
        )
        return cls(**options)

    def __repr__(self):
        return f'<LaunchConfig {self.arch} {self.machine}>'

    @staticmethod
    def _port(value, name):
        if value is None:
            return None
        try:
            port = int(value)
        except (TypeError, ValueError):
            raise ConfigError(f'{name} must be a port number, got {value!r}')
        if not 0 < port < 65536:
            raise ConfigError(f'{name} out of range: {port}')
        return port

    @property
    def needs_firmware(self):
        return self.arch == 'aarch64'

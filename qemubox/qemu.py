import fcntl
import logging
import subprocess
from functools import lru_cache

logger = logging.getLogger(__name__)

NETDEV_ID = 'net0'
MONITOR_ID = 'mon0'
SERIAL_ID = 'ser0'


@lru_cache()
def host_arch():
    machine = subprocess.check_output(['uname', '-m']).decode('utf8').strip()
    if machine in ['arm64', 'aarch64']:
        return 'aarch64'
    return machine


@lru_cache()
def host_kernel():
    return subprocess.check_output(['uname']).decode('utf8').strip()


def accel():
    return 'hvf' if host_kernel() == 'Darwin' else 'kvm'


def default_machine(arch):
    if arch == 'aarch64':
        if accel() == 'hvf':
            return 'virt,accel=hvf,highmem=off'
        return 'virt,accel=kvm'
    return f'q35,accel={accel()}'


def default_cpu(arch):
    if arch == 'aarch64':
        return 'cortex-a72'
    return 'host'


def default_net_device(arch):
    if arch == 'aarch64':
        return 'virtio-net-device'
    return 'virtio-net-pci'


def default_firmware_dir():
    if host_kernel() == 'Darwin':
        return '/opt/homebrew/share/qemu'
    return '/usr/share/qemu'


def binary(arch):
    return f'qemu-system-{arch}'


class Arg:
    """A command line flag followed by its comma-separated sub-options.

    Each option is either a bare token (``'user'``) or a ``(key, value)``
    pair rendered as ``key=value``.
    """

    def __init__(self, flag, *options):
        self.flag = flag
        self.options = list(options)

    def __repr__(self):
        return f'<Arg {" ".join(self.serialize())}>'

    def get(self, key, default=None):
        for option in self.options:
            if isinstance(option, tuple) and option[0] == key:
                return option[1]
        return default

    def serialize(self):
        if not self.options:
            return [self.flag]
        rendered = [
            f'{option[0]}={option[1]}' if isinstance(option, tuple)
            else str(option)
            for option in self.options
        ]
        return [self.flag, ','.join(rendered)]


class Raw:
    def __init__(self, args):
        self.args = list(args)

    def __repr__(self):
        return f'<Raw {self.args!r}>'

    def serialize(self):
        return [str(arg) for arg in self.args]


def netdev_arg(config):
    options = [
        'user',
        ('id', NETDEV_ID),
        ('hostfwd', f'tcp::{config.ssh_port}-:22'),
    ]
    options += [('hostfwd', rule) for rule in config.ports]
    if config.extra_netdev_args is not None:
        options.append(config.extra_netdev_args)
    return Arg('-netdev', *options)


def chardev_arg(id, endpoint):
    return Arg(
        '-chardev',
        'socket',
        ('id', id),
        *endpoint.chardev_options(),
        ('server', 'on'),
        ('wait', 'off'),
    )


def launch_args(instance, config):
    args = [
        Raw([binary(config.arch)]),
        Arg('-machine', config.machine),
        Arg('-cpu', config.cpu),
        Arg('-smp', config.smp),
        Arg('-m', config.memory),
        Arg('-device', config.net_device, ('netdev', NETDEV_ID)),
        netdev_arg(config),
        Arg(
            '-drive',
            ('if', 'virtio'),
            ('format', 'qcow2'),
            ('file', instance.disk_path),
        ),
    ]

    if config.needs_firmware:
        code_path, vars_path = instance.firmware_paths
        args += [
            Arg(
                '-drive',
                ('if', 'pflash'),
                ('format', 'raw'),
                ('file', code_path),
                ('readonly', 'on'),
            ),
            Arg('-drive', ('if', 'pflash'), ('format', 'raw'), ('file', vars_path)),
        ]

    args += [
        chardev_arg(MONITOR_ID, instance.control_endpoint(config)),
        Arg('-mon', ('chardev', MONITOR_ID), ('mode', 'readline')),
        chardev_arg(SERIAL_ID, instance.serial_endpoint(config)),
        Arg('-serial', f'chardev:{SERIAL_ID}'),
        Arg('-pidfile', instance.pid_path),
        Arg('-parallel', 'null'),
        Arg('-monitor', 'none'),
        Arg('-display', 'none'),
        Arg('-vga', 'none'),
    ]

    if not config.no_daemonize:
        args.append(Arg('-daemonize'))

    args.append(Raw(config.extra_qemu_args))
    return args


def serialize(args):
    return [item for arg in args for item in arg.serialize()]


def launch_command(instance, config):
    return serialize(launch_args(instance, config))


def image_command(base_path, target_path):
    return [
        'qemu-img', 'create',
        '-f', 'qcow2',
        '-F', 'qcow2',
        '-b', str(base_path),
        str(target_path),
    ]


def doctor(arch=None):
    arch = arch or host_arch()

    assert subprocess.check_output(
        [binary(arch), '--version']
    ).startswith(b'QEMU emulator version')

    assert subprocess.check_output(
        ['qemu-img', '--version']
    ).startswith(b'qemu-img version')

    if host_kernel() == 'Linux':
        KVM_GET_API_VERSION = 0xae00
        KVM_API_VERSION = 12
        with open('/dev/kvm') as kvm:
            assert fcntl.ioctl(kvm, KVM_GET_API_VERSION) == KVM_API_VERSION

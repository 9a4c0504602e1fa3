import logging
import secrets
import shutil
from pathlib import Path

from . import qemu, state
from .exceptions import ConfigError, ExecuteError
from .monitor import Monitor, endpoint
from .state import State

logger = logging.getLogger(__name__)

DISK_FILENAME = 'linked-box.img'
PID_FILENAME = 'qemu.pid'
FIRMWARE_FILENAMES = ['edk2-aarch64-code.fd', 'edk2-arm-vars.fd']
CONTROL_SOCKET_FILENAME = 'qemu_socket'
SERIAL_SOCKET_FILENAME = 'qemu_socket_serial'


def new_instance_id():
    return secrets.token_urlsafe(8)


class Instance:
    @classmethod
    def create(cls, store, config, interrupt=None):
        """Import ``config.image_path`` as a new copy-on-write instance."""
        if not config.image_path:
            raise ConfigError('image_path is required to import an instance')

        instance = cls(store, new_instance_id())
        logger.info('Importing %s as %s ...', config.image_path, instance)

        instance.path.mkdir(parents=True, exist_ok=True)
        instance.runtime_path.mkdir(parents=True, exist_ok=True)

        if config.needs_firmware:
            for name in FIRMWARE_FILENAMES:
                source = Path(config.qemu_dir) / name
                target = instance.path / name
                logger.debug('Copying firmware %s ...', source)
                try:
                    shutil.copy(source, target)
                except OSError as e:
                    raise ExecuteError(
                        ['cp', str(source), str(target)], stderr=str(e)
                    ) from e

        store.runner.execute(
            *qemu.image_command(config.image_path, instance.disk_path),
            interrupt=interrupt,
        )

        return instance

    def __init__(self, store, id):
        self.store = store
        self.id = id
        self.path = store.instance_path(id)
        self.runtime_path = store.runtime_path(id)
        self.disk_path = self.path / DISK_FILENAME
        self.pid_path = self.path / PID_FILENAME
        self.firmware_paths = [self.path / name for name in FIRMWARE_FILENAMES]
        self.control_socket_path = self.runtime_path / CONTROL_SOCKET_FILENAME
        self.serial_socket_path = self.runtime_path / SERIAL_SOCKET_FILENAME

    def __repr__(self):
        return f'<Instance {self.id!r}>'

    @property
    def is_created(self):
        return self.path.is_dir()

    @property
    def pid(self):
        return state.read_pidfile(self.pid_path)

    @property
    def is_running(self):
        if not self.is_created:
            return False
        pid = self.pid
        return pid is not None and state.pid_alive(pid)

    @property
    def state(self):
        return state.classify(
            lambda: self.is_running,
            lambda: self.is_created,
        )

    def control_endpoint(self, config):
        return endpoint(config.control_port, self.control_socket_path)

    def serial_endpoint(self, config):
        return endpoint(config.debug_port, self.serial_socket_path)

    def ssh_port(self, config):
        return config.ssh_port

    def command(self, config):
        return qemu.launch_command(self, config)

    def start(self, config, interrupt=None):
        if self.state == State.RUNNING:
            logger.info('%s is already running (pid %s)', self, self.pid)
            return

        logger.info('Starting %s ...', self)
        self.runtime_path.mkdir(parents=True, exist_ok=True)
        self.store.runner.execute(
            *self.command(config),
            detach=config.no_daemonize,
            interrupt=interrupt,
        )

    def stop(self, config):
        if self.state != State.RUNNING:
            logger.info('%s is not running', self)
            return

        logger.info('Requesting powerdown of %s ...', self)
        Monitor(self.control_endpoint(config)).powerdown()

    def delete(self):
        if self.state == State.NOT_CREATED:
            return

        logger.info('Deleting %s ...', self)
        shutil.rmtree(self.path)
        if self.runtime_path.exists():
            shutil.rmtree(self.runtime_path)

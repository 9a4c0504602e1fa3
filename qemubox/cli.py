import functools
import logging
import os
import shlex
import tempfile
from pathlib import Path

import click

from . import qemu, utils
from .configs import OPTIONS, LaunchConfig
from .exceptions import QemuboxError, WaitTimeout
from .instances import Instance
from .process import Interrupt
from .state import State
from .store import Store

logger = logging.getLogger(__name__)

_data_path = os.environ.get(
    'QEMUBOX_DATA_PATH', Path.home() / '.cache' / 'qemubox'
)
_tmp_path = os.environ.get('QEMUBOX_TMP_PATH', tempfile.gettempdir())
store = Store(Path(_data_path), Path(_tmp_path))


def config_options(func):
    @click.option(
        '-c', '--config', 'config_path',
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
    )
    @click.option('--arch')
    @click.option('--machine')
    @click.option('--cpu')
    @click.option('--smp', type=int)
    @click.option('-m', '--memory')
    @click.option('--net-device')
    @click.option('--ssh-port', type=int)
    @click.option('-p', '--port', 'ports', multiple=True)
    @click.option('--extra-netdev-args')
    @click.option('--control-port', type=int)
    @click.option('--debug-port', type=int)
    @click.option('--no-daemonize', is_flag=True)
    @click.option('--qemu-arg', 'extra_qemu_args', multiple=True)
    @click.option('--image', 'image_path', type=click.Path(path_type=Path))
    @click.option('--qemu-dir', type=click.Path(path_type=Path))
    @functools.wraps(func)
    def wrapper(*args, config_path, **kwargs):
        options = {}
        for key in list(kwargs):
            if key in OPTIONS:
                value = kwargs.pop(key)
                # click passes an empty tuple for unused multiple options
                options[key] = value or None
        try:
            config = LaunchConfig.load(config_path, **options)
        except QemuboxError as e:
            raise click.ClickException(str(e))
        return func(*args, config=config, **kwargs)

    return wrapper


def get_instance(id):
    try:
        return store.get_instance(id)
    except QemuboxError as e:
        raise click.ClickException(str(e))


@click.group()
@click.option('-v', '--verbose', is_flag=True)
@click.option('-d', '--debug', is_flag=True)
def cli(verbose, debug):
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level)


@cli.command()
@click.option('--arch')
def doctor(arch):
    qemu.doctor(arch)
    print('🚑👌')  # noqa: T201


@cli.command('import')
@config_options
def import_(config):
    interrupt = Interrupt()
    try:
        with interrupt.trap():
            instance = Instance.create(store, config, interrupt=interrupt)
    except (QemuboxError, OSError) as e:
        raise click.ClickException(str(e))
    print(instance.id)  # noqa: T201


@cli.command()
@click.argument('id')
@config_options
@click.option('--wait-for-ssh', type=int, default=None)
def start(id, config, wait_for_ssh):
    instance = get_instance(id)
    if instance.state == State.NOT_CREATED:
        raise click.ClickException(f'{instance} does not exist')

    interrupt = Interrupt()
    try:
        with interrupt.trap():
            instance.start(config, interrupt=interrupt)
        if wait_for_ssh:
            utils.wait_for_ssh(instance.ssh_port(config), wait_for_ssh)
    except (QemuboxError, WaitTimeout) as e:
        raise click.ClickException(str(e))


@cli.command()
@click.argument('id')
@config_options
@click.option('--wait', type=int, default=None)
def stop(id, config, wait):
    instance = get_instance(id)
    try:
        instance.stop(config)
    except OSError as e:
        raise click.ClickException(f'Could not reach the monitor: {e}')

    if wait:
        def stopped():
            """instance to stop"""
            return instance.state != State.RUNNING

        try:
            utils.waitfor(stopped, timeout=wait, poll_interval=0.5)
        except WaitTimeout:
            raise click.ClickException(f'{instance} is still running')


@cli.command()
@click.argument('id')
def delete(id):
    get_instance(id).delete()


@cli.command()
@click.argument('id')
def status(id):
    print(get_instance(id).state.value)  # noqa: T201


@cli.command()
@click.option('-a', '--all', 'all_', is_flag=True)
def ps(all_):
    for instance in store.iter_instances():
        instance_state = instance.state
        if instance_state != State.RUNNING and not all_:
            continue
        print(instance.id, instance_state.value, instance.pid or '-')  # noqa


@cli.command()
@click.argument('id')
@config_options
def command(id, config):
    instance = get_instance(id)
    print(shlex.join(instance.command(config)))  # noqa: T201


@cli.command()
@click.argument('id')
@config_options
def console(id, config):
    instance = get_instance(id)
    address = instance.serial_endpoint(config).socat_address()
    os.execvp(
        'socat',
        ['socat', 'stdin,raw,echo=0,escape=0x1d', address],
    )

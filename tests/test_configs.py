import pytest

from qemubox.configs import LaunchConfig
from qemubox.exceptions import ConfigError


def test_defaults_for_aarch64():
    config = LaunchConfig(arch='aarch64')
    assert config.cpu == 'cortex-a72'
    assert config.net_device == 'virtio-net-device'
    assert config.machine.startswith('virt,')
    assert config.smp == '2'
    assert config.memory == '4G'
    assert config.ssh_port == 50022
    assert config.ports == []
    assert config.control_port is None
    assert config.debug_port is None
    assert not config.no_daemonize
    assert config.extra_qemu_args == []
    assert config.needs_firmware


def test_defaults_for_x86_64():
    config = LaunchConfig(arch='x86_64')
    assert config.net_device == 'virtio-net-pci'
    assert config.machine.startswith('q35,')
    assert not config.needs_firmware


def test_unknown_option():
    with pytest.raises(ConfigError) as excinfo:
        LaunchConfig(arch='x86_64', memroy='1G')
    assert 'memroy' in str(excinfo.value)


@pytest.mark.parametrize('port', ['ssh', 0, 70000])
def test_invalid_port(port):
    with pytest.raises(ConfigError):
        LaunchConfig(arch='x86_64', control_port=port)


def test_load_yaml_with_overrides(tmp_path):
    path = tmp_path / 'qemubox.yaml'
    path.write_text(
        'arch: aarch64\n'
        'memory: 2G\n'
        'smp: 4\n'
        'ports:\n'
        '  - tcp::8080-:80\n'
        'control_port: 4444\n'
        'extra_qemu_args: [-snapshot]\n'
    )

    config = LaunchConfig.load(path, memory='8G', smp=None)

    assert config.arch == 'aarch64'
    assert config.memory == '8G'
    assert config.smp == '4'
    assert config.ports == ['tcp::8080-:80']
    assert config.control_port == 4444
    assert config.extra_qemu_args == ['-snapshot']


def test_load_empty_yaml(tmp_path):
    path = tmp_path / 'qemubox.yaml'
    path.write_text('')
    assert LaunchConfig.load(path, arch='x86_64').arch == 'x86_64'


def test_load_yaml_not_a_mapping(tmp_path):
    path = tmp_path / 'qemubox.yaml'
    path.write_text('- arch\n')
    with pytest.raises(ConfigError):
        LaunchConfig.load(path)


def test_load_yaml_unknown_key(tmp_path):
    path = tmp_path / 'qemubox.yaml'
    path.write_text('disk: 10G\n')
    with pytest.raises(ConfigError):
        LaunchConfig.load(path)

import re

from . import instances
from .exceptions import InvalidInstanceId
from .process import Runner


class Store:
    def __init__(self, data_path, tmp_path, runner=None):
        self.data_path = data_path
        self.tmp_path = tmp_path / 'qemubox'
        self.runner = runner or Runner()

    def __repr__(self):
        return f'<Store {self.data_path}>'

    def instance_path(self, id):
        return self.data_path / id

    def runtime_path(self, id):
        return self.tmp_path / id

    def get_instance(self, id):
        if not re.match(r'^[A-Za-z0-9_-]+$', id):
            raise InvalidInstanceId(f'Invalid instance id {id!r}')
        return instances.Instance(self, id)

    def iter_instances(self):
        for path in sorted(self.data_path.glob('*')):
            if path.is_dir():
                yield instances.Instance(self, path.name)

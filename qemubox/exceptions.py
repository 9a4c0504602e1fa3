class QemuboxError(RuntimeError):
    pass


class ExecuteError(QemuboxError):
    def __init__(self, command, stdout='', stderr=''):
        self.command = command
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f'Command {command!r} failed\n'
            f'stdout: {stdout}\n'
            f'stderr: {stderr}'
        )


class ConfigError(QemuboxError):
    pass


class InvalidInstanceId(QemuboxError):
    pass


class WaitTimeout(RuntimeError):
    pass

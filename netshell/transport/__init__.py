from netshell.transport.base import LineSink, Target
from netshell.transport.local import LocalTarget
from netshell.transport.ssh import SshTarget
from netshell.transport.registry import TargetRegistry, build_target

__all__ = ["LineSink", "Target", "LocalTarget", "SshTarget", "TargetRegistry", "build_target"]

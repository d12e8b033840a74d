"""Module registry: maps step server names to live Target instances."""
#
# PURPOSE:
# Resolves the names listed in a step's `servers` (or the synthetic "local"
# target) into Target objects, building each one on first use and reusing it
# for the rest of the orchestrator run so SSH connections are shared between
# steps and pipelines.
#
# KEY CONCEPTS:
# - String fields of ssh_config are templates rendered against the global
#   variables before the target is built ("{{ master_ip }}")
# - The factory is injectable so tests can swap in fake targets
#

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from netshell.base.config import ExecutionDefaults, get_config
from netshell.config.schema import ClientConfig, ExecutionMethod
from netshell.engine.models import LOCAL_TARGET
from netshell.errors import ConfigError, ErrorCode
from netshell.template.engine import TemplateEngine
from netshell.transport.base import Target
from netshell.transport.local import LocalTarget
from netshell.transport.ssh import SshTarget

logger = logging.getLogger(__name__)

TargetFactory = Callable[[str, Optional[ClientConfig], ExecutionDefaults], Target]

_SSH_TEMPLATE_FIELDS = ("host", "username", "password", "private_key_path")


def build_target(name: str, client: Optional[ClientConfig], defaults: ExecutionDefaults) -> Target:
    """Default factory: Local for the synthetic target and local clients, SSH otherwise."""
    if client is None or client.execution_method is ExecutionMethod.LOCAL:
        return LocalTarget(name, defaults)
    return SshTarget(name, client.ssh_config, defaults)


class TargetRegistry:
    def __init__(
        self,
        clients: Mapping[str, ClientConfig],
        variables: Mapping[str, Any],
        template_engine: Optional[TemplateEngine] = None,
        defaults: Optional[ExecutionDefaults] = None,
        factory: Optional[TargetFactory] = None,
    ):
        self.clients = clients
        self.variables = variables
        self.template_engine = template_engine or TemplateEngine()
        self.defaults = defaults or get_config().execution
        self.factory = factory or build_target
        self._targets: Dict[str, Target] = {}

    def get(self, name: str) -> Target:
        """
        Return the target for a server name, building it on first use.

        Raises:
            ConfigError: the name is not a configured client
            TemplateError: an ssh_config field failed to render
        """
        target = self._targets.get(name)
        if target is not None:
            return target

        if name in self.clients:
            client = self._render_client(self.clients[name])
        elif name == LOCAL_TARGET:
            client = None
        else:
            raise ConfigError(
                ErrorCode.CONFIG_UNKNOWN_CLIENT,
                f"Client '{name}' is not configured",
                details={"client": name, "available": sorted(self.clients)},
            )

        target = self.factory(name, client, self.defaults)
        self._targets[name] = target
        logger.debug(f"[TargetRegistry] Built {target!r}")
        return target

    def _render_client(self, client: ClientConfig) -> ClientConfig:
        if client.ssh_config is None:
            return client
        templated = {
            field: getattr(client.ssh_config, field)
            for field in _SSH_TEMPLATE_FIELDS
            if getattr(client.ssh_config, field) is not None
        }
        rendered = self.template_engine.render_mapping(templated, self.variables)
        return client.model_copy(update={"ssh_config": client.ssh_config.model_copy(update=rendered)})

    @property
    def active(self) -> List[str]:
        return list(self._targets)

    async def close(self) -> None:
        """Close every target built so far."""
        targets, self._targets = list(self._targets.values()), {}
        for target in targets:
            try:
                await target.close()
            except Exception as e:
                logger.error(f"[TargetRegistry] Failed to close {target!r}: {e}")

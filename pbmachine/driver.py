"""Machine driver exposing the lifecycle operations a host manager calls."""

from __future__ import annotations

from typing import Callable

from loguru import logger

from .config import PBMachineConfig
from .errors import (
    AuthenticationError,
    MissingCredentialError,
    NotRunningError,
    ProviderRejectedError,
    QueryError,
)
from .models import Machine
from .orchestrator import Provisioner
from .poller import OperationPoller
from .provider import ProviderAPI
from .sshkey import generate_ssh_key
from .state import CanonicalState, map_state
from .teardown import TeardownController

log = logger

DOCKER_PORT = 2376


class Driver:
    """Lifecycle operations for one machine backed by a provider client.

    The host must serialize calls for a given machine.
    """

    name = 'profitbricks'

    def __init__(
        self,
        cfg: PBMachineConfig,
        machine: Machine,
        provider: ProviderAPI,
        *,
        poller: OperationPoller | None = None,
        keygen: Callable[[], str] | None = None,
    ):
        self.cfg = cfg
        self.machine = machine
        self.provider = provider
        self.poller = poller or OperationPoller(
            provider,
            attempts=cfg.poll.attempts,
            interval_s=cfg.poll.interval_s,
        )
        self.keygen = keygen or (lambda: generate_ssh_key(cfg.ssh_key_path()))
        self.teardown = TeardownController(provider, self.poller)
        self.provisioner = Provisioner(
            provider, self.poller, teardown=self.teardown
        )

    def pre_create_check(self) -> None:
        if not self.cfg.provider.username:
            raise MissingCredentialError(
                'Please provide a username via provider.username or '
                '$PROFITBRICKS_USERNAME'
            )
        dc_id = self.cfg.machine.datacenter_id
        if dc_id:
            dc = self.provider.get_datacenter(dc_id)
            log.info('Creating machine under {} datacenter.', dc.name)
        self.provisioner.resolve_image(self.cfg.machine)

    def create(self) -> Machine:
        self.pre_create_check()
        return self.provisioner.create(
            self.machine, self.cfg.machine, keygen=self.keygen
        )

    def remove(self) -> None:
        self.teardown.remove(self.machine)

    def get_state(self) -> CanonicalState:
        try:
            server = self.provider.get_server(
                self.machine.datacenter_id, self.machine.server_id
            )
        except AuthenticationError:
            raise
        except ProviderRejectedError as ex:
            raise QueryError(
                f'Error occurred while fetching a server: {ex.body or ex}'
            ) from ex
        return map_state(server.status)

    def get_ip(self) -> str:
        server = self.provider.get_server(
            self.machine.datacenter_id, self.machine.server_id
        )
        ip = server.primary_ip
        if not ip:
            raise QueryError('IP address is not set')
        self.machine.ip_address = ip
        return ip

    def get_ssh_hostname(self) -> str:
        return self.get_ip()

    def get_url(self) -> str:
        state = self.get_state()
        if state is not CanonicalState.RUNNING:
            raise NotRunningError(
                f'Machine {self.machine.name} is not running (state={state})'
            )
        return f'tcp://{self.get_ip()}:{DOCKER_PORT}'

    def start(self) -> None:
        if self.get_state() is CanonicalState.RUNNING:
            log.info('Host is already running or starting')
            return
        self.provider.start_server(
            self.machine.datacenter_id, self.machine.server_id
        )
        log.info('Start requested for {}', self.machine.name)

    def stop(self) -> None:
        if self.get_state() is CanonicalState.STOPPED:
            log.info('Host is already stopped')
            return
        self.provider.stop_server(
            self.machine.datacenter_id, self.machine.server_id
        )
        log.info('Stop requested for {}', self.machine.name)

    def kill(self) -> None:
        # there is no hard power-off call; kill issues the same stop
        self.stop()

    def restart(self) -> None:
        self.provider.reboot_server(
            self.machine.datacenter_id, self.machine.server_id
        )
        log.info('Restart requested for {}', self.machine.name)

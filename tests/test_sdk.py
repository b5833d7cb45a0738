"""Tests for the SDK-backed provider."""

from __future__ import annotations

import pytest

pytest.importorskip('profitbricks')

from profitbricks.client import ProfitBricksService  # noqa: E402
from profitbricks.errors import PBValidationError  # noqa: E402

from pbmachine.config import ProviderConfig  # noqa: E402
from pbmachine.errors import (  # noqa: E402
    DecodeError,
    MissingCredentialError,
    ProviderRejectedError,
)
from pbmachine.models import JobState  # noqa: E402
from pbmachine.provider import NicSpec, ServerSpec, VolumeSpec  # noqa: E402
from pbmachine.sdk import ProfitBricksProvider  # noqa: E402


class StubService:
    def __init__(self):
        self.calls = []

    def reserve_ipblock(self, ipblock):
        self.calls.append(('reserve_ipblock', ipblock))
        return {
            'id': 'ipb-1',
            'requestId': 'req-1',
            'properties': {'ips': ['203.0.113.2'], 'location': 'us/las', 'size': 1},
        }

    def get_request(self, request_id, status=False):
        self.calls.append(('get_request', request_id, status))
        return {'metadata': {'status': 'DONE', 'message': ''}}

    def create_server(self, datacenter_id, server):
        self.calls.append(('create_server', datacenter_id, server))
        return {
            'id': 'srv-1',
            'requestId': 'req-2',
            'properties': {'name': 'm'},
            'entities': {
                'volumes': {'items': [{'id': 'vol-1'}]},
                'nics': {'items': [{'id': 'nic-1', 'properties': {'ips': ['203.0.113.2']}}]},
            },
        }


def test_requires_username_without_service() -> None:
    with pytest.raises(MissingCredentialError):
        ProfitBricksProvider(ProviderConfig(username=''))


def test_reserve_and_poll_decode() -> None:
    svc = StubService()
    prov = ProfitBricksProvider(ProviderConfig(), service=svc)
    job, block = prov.reserve_ip_block(1, 'us/las')
    assert job == 'req-1'
    assert block.ips == ['203.0.113.2']
    assert prov.get_job_status(job).state is JobState.DONE
    assert svc.calls[-1] == ('get_request', 'req-1', True)


def test_composite_create_server_decodes_entities() -> None:
    prov = ProfitBricksProvider(ProviderConfig(), service=StubService())
    job, srv = prov.create_server(
        'dc-1',
        ServerSpec(name='m', ram=1024, cores=1),
        volume=VolumeSpec(name='m', size=10, image='img'),
        nic=NicSpec(name='m', lan=1, ips=['203.0.113.2']),
    )
    assert job == 'req-2'
    assert srv.volumes[0].id == 'vol-1'
    assert srv.primary_ip == '203.0.113.2'



class FakeResponse:
    def __init__(self, status_code: int, headers: dict | None = None):
        self.status_code = status_code
        self.ok = status_code < 400
        self.headers = headers or {}


def _service(monkeypatch, response: FakeResponse) -> tuple[ProfitBricksService, list]:
    svc = ProfitBricksService(
        username='user',
        password='secret',
        host_base='https://api.example.test/cloudapi/v4',
        use_config=False,
        use_keyring=False,
    )
    sent = []

    def wrapped_request(method, url, **kwargs):
        sent.append((method, url))
        return response

    monkeypatch.setattr(svc, '_wrapped_request', wrapped_request)
    return svc, sent


def test_delete_reads_request_id_from_location(monkeypatch) -> None:
    location = 'https://api.example.test/cloudapi/v4/requests/ab12-cd34/status'
    svc, sent = _service(monkeypatch, FakeResponse(202, {'location': location}))
    prov = ProfitBricksProvider(ProviderConfig(), service=svc)

    assert prov.delete_datacenter('dc-1') == 'ab12-cd34'
    assert sent == [('DELETE', 'https://api.example.test/cloudapi/v4/datacenters/dc-1')]
    assert prov.release_ip_block('ipb-1') == 'ab12-cd34'
    # the transport hook is restored after each delete
    assert svc._wrapped_request.__name__ == 'wrapped_request'


def test_delete_without_location_is_decode_error(monkeypatch) -> None:
    svc, _ = _service(monkeypatch, FakeResponse(202))
    prov = ProfitBricksProvider(ProviderConfig(), service=svc)
    with pytest.raises(DecodeError, match='delete lan'):
        prov.delete_lan('dc-1', '1')


def test_rejection_keeps_http_status() -> None:
    class RejectingService:
        def get_datacenter(self, datacenter_id):
            raise PBValidationError(422, 'invalid datacenter', '/datacenters/x')

    prov = ProfitBricksProvider(ProviderConfig(), service=RejectingService())
    with pytest.raises(ProviderRejectedError) as info:
        prov.get_datacenter('x')
    assert info.value.status_code == 422
    assert 'invalid datacenter' in info.value.body

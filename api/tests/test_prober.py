"""Tests for the endpoint prober, using httpx.MockTransport instead of a network."""

import json
import uuid

import httpx

from trustradar.models import Endpoint
from trustradar.services.prober import build_response_sample, manifest_url, probe_endpoint


def make_endpoint(url="https://agent.example.com"):
    return Endpoint(id=uuid.uuid4(), url=url, name="Example Agent")


def client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestManifestUrl:
    def test_appends_well_known_path(self):
        assert manifest_url("https://a.example.com") == "https://a.example.com/.well-known/agent.json"
        assert manifest_url("https://a.example.com/") == "https://a.example.com/.well-known/agent.json"


class TestBuildResponseSample:
    def test_keeps_name_version_and_truncated_description(self):
        response = httpx.Response(
            200, json={"name": "agent", "version": "1.2", "description": "x" * 500, "extra": True}
        )
        sample = json.loads(build_response_sample(response))
        assert sample == {"name": "agent", "version": "1.2", "description": "x" * 200}

    def test_non_json_body_has_no_sample(self):
        assert build_response_sample(httpx.Response(200, text="<html></html>")) is None

    def test_json_list_has_no_sample(self):
        assert build_response_sample(httpx.Response(200, json=[1, 2])) is None


class TestProbeEndpoint:
    async def test_successful_probe(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"name": "agent", "version": "1.0"})

        endpoint = make_endpoint()
        async with client_for(handler) as client:
            test = await probe_endpoint(endpoint, client)

        assert seen == ["https://agent.example.com/.well-known/agent.json"]
        assert test.endpoint_id == endpoint.id
        assert test.is_successful is True
        assert test.status_code == 200
        assert test.error_message is None
        assert test.response_time_ms >= 0
        assert json.loads(test.response_sample)["name"] == "agent"

    async def test_non_200_is_a_failure(self):
        async with client_for(lambda request: httpx.Response(503)) as client:
            test = await probe_endpoint(make_endpoint(), client)

        assert test.is_successful is False
        assert test.status_code == 503
        assert test.error_message == "HTTP 503"
        assert test.response_sample is None

    async def test_transport_error_becomes_failed_record(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with client_for(handler) as client:
            test = await probe_endpoint(make_endpoint(), client)

        assert test.is_successful is False
        assert test.status_code == 0
        assert "connection refused" in test.error_message

    async def test_unsendable_url_becomes_failed_record(self):
        """httpx.InvalidURL is not an HTTPError; it still yields a failed test."""
        called = []

        def handler(request):
            called.append(request)
            return httpx.Response(200)

        async with client_for(handler) as client:
            test = await probe_endpoint(make_endpoint("https://bad.example.com/a\tb"), client)

        assert called == []
        assert test.is_successful is False
        assert test.status_code == 0
        assert test.error_message

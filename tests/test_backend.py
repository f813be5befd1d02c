"""Tests for the HTTP backend client and the process actions built on it."""

from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from pulsetop.actions import ProcessActions
from pulsetop.backend import BackendClient
from pulsetop.errors import BackendError
from pulsetop.notifications import NotificationCenter, NotificationKind


def make_app(state: dict) -> web.Application:
    async def monitoring_status(request):
        if request.method == "POST":
            body = await request.json()
            state["enabled"] = body["enabled"]
        return web.json_response({"enabled": state["enabled"]})

    async def host(request):
        return web.json_response({"username": "alice", "hostname": "box"})

    async def device(request):
        return web.json_response({"processname": "Ryzen 9", "cores": 16})

    async def kill(request):
        body = await request.json()
        if body["pid"] == 1:
            return web.json_response({"message": "Operation not permitted"}, status=403)
        state.setdefault("killed", []).append(body["pid"])
        return web.json_response({"message": f"Process {body['pid']} killed"})

    async def ports(request):
        return web.json_response(
            [
                {
                    "port": 8080,
                    "protocol": "tcp",
                    "pid": 42,
                    "process": "server",
                    "status": "LISTEN",
                    "localAddr": "0.0.0.0:8080",
                    "remoteAddr": "",
                },
                "garbage",
            ]
        )

    async def start(request):
        body = await request.json()
        return web.json_response(
            {"pid": 4242, "command": body["command"], "args": body["args"], "cwd": body["cwd"], "msg": ""}
        )

    async def broken(request):
        return web.Response(text="<html>oops</html>", status=500)

    app = web.Application()
    app.router.add_route("*", "/api/monitoring-status", monitoring_status)
    app.router.add_get("/api/get-host-username", host)
    app.router.add_get("/api/get-device-info", device)
    app.router.add_post("/api/kill-process-by-id", kill)
    app.router.add_get("/api/listening-ports", ports)
    app.router.add_post("/api/start-processes", start)
    app.router.add_get("/api/broken", broken)
    return app


@asynccontextmanager
async def running_backend(state=None):
    state = {"enabled": True} if state is None else state
    async with TestServer(make_app(state)) as server:
        async with BackendClient(str(server.make_url("/"))) as client:
            yield client, state


@pytest.mark.asyncio
async def test_monitoring_status_round_trip():
    """Test reading and toggling the monitoring flag."""
    async with running_backend() as (client, state):
        assert await client.get_monitoring_status() is True
        assert await client.set_monitoring_status(False) is False
        assert state["enabled"] is False


@pytest.mark.asyncio
async def test_host_and_device_info():
    async with running_backend() as (client, _):
        host = await client.get_host_info()
        device = await client.get_device_info()

    assert (host.username, host.hostname) == ("alice", "box")
    assert (device.processor_name, device.cores) == ("Ryzen 9", 16)


@pytest.mark.asyncio
async def test_listening_ports_skip_bad_items():
    async with running_backend() as (client, _):
        ports = await client.list_listening_ports()

    assert len(ports) == 1
    assert ports[0].port == 8080
    assert ports[0].local_addr == "0.0.0.0:8080"


@pytest.mark.asyncio
async def test_error_status_carries_server_message():
    """Test a 4xx body message becomes the error text."""
    async with running_backend() as (client, _):
        with pytest.raises(BackendError) as exc_info:
            await client.kill_process(1)

    assert exc_info.value.status == 403
    assert "Operation not permitted" in str(exc_info.value)


@pytest.mark.asyncio
async def test_non_json_body():
    async with running_backend() as (client, _):
        with pytest.raises(BackendError) as exc_info:
            await client.request("GET", "/api/broken")

    assert exc_info.value.status == 500


@pytest.mark.asyncio
async def test_invalid_arguments_rejected_locally():
    """Test bad pids and empty commands never reach the server."""
    client = BackendClient("http://127.0.0.1:1")
    with pytest.raises(ValueError):
        await client.kill_process(0)
    with pytest.raises(ValueError):
        await client.start_process("   ")
    await client.close()


@pytest.mark.asyncio
async def test_terminate_success_notifies():
    """Test a successful kill yields one success notification."""
    center = NotificationCenter()
    async with running_backend() as (client, state):
        notification = await ProcessActions(client, center).terminate(1234)

    assert state["killed"] == [1234]
    assert notification.kind is NotificationKind.SUCCESS
    assert notification.title == "Process terminated"
    assert center.items == [notification]


@pytest.mark.asyncio
async def test_terminate_failure_notifies():
    """Test a rejected kill yields an error notification instead of raising."""
    async with running_backend() as (client, _):
        notification = await ProcessActions(client).terminate(1)

    assert notification.kind is NotificationKind.ERROR
    assert "Operation not permitted" in notification.message


@pytest.mark.asyncio
async def test_terminate_with_failing_subscriber():
    """Test a broken notification subscriber does not escape the action."""
    center = NotificationCenter()
    center.subscribe(lambda notification: 1 / 0)
    async with running_backend() as (client, state):
        notification = await ProcessActions(client, center).terminate(77)

    assert state["killed"] == [77]
    assert notification.kind is NotificationKind.SUCCESS
    assert center.items == [notification]


@pytest.mark.asyncio
async def test_terminate_unreachable_backend():
    client = BackendClient("http://127.0.0.1:1", timeout=2)
    notification = await ProcessActions(client).terminate(10)
    await client.close()

    assert notification.kind is NotificationKind.ERROR


@pytest.mark.asyncio
async def test_launch():
    async with running_backend() as (client, _):
        notification = await ProcessActions(client).launch("sleep", "10", "/tmp")

    assert notification.kind is NotificationKind.SUCCESS
    assert "4242" in notification.message

import asyncio
import threading

import pytest

from lanshare.networking import BindError, FileServer, HostInventory, PeerScanner, SubnetDetectionError
from lanshare.networking import scanner as scanner_module
from lanshare.networking.scanner import candidate_hosts, get_local_ip, parse_subnet


class TestParseSubnet:
    def test_three_octets(self):
        assert str(parse_subnet("192.168.1")) == "192.168.1.0/24"

    def test_cidr(self):
        assert str(parse_subnet("10.0.5.0/24")) == "10.0.5.0/24"

    def test_full_address_is_truncated(self):
        assert str(parse_subnet("192.168.1.77")) == "192.168.1.0/24"

    @pytest.mark.parametrize("value", ["not-a-subnet", "10.0.0.0/16", "300.1.1"])
    def test_invalid(self, value):
        with pytest.raises(SubnetDetectionError):
            parse_subnet(value)


def test_candidate_hosts_cover_1_to_254():
    hosts = candidate_hosts(parse_subnet("192.168.1"))
    assert len(hosts) == 254
    assert hosts[0] == "192.168.1.1"
    assert hosts[-1] == "192.168.1.254"
    assert "192.168.1.0" not in hosts
    assert "192.168.1.255" not in hosts


class FakeSocket:
    def __init__(self, local_ip=None, error=None):
        self.local_ip = local_ip
        self.error = error

    def __call__(self, *args, **kwargs):
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def connect(self, address):
        if self.error:
            raise self.error

    def getsockname(self):
        return (self.local_ip, 40000)


def test_get_local_ip(monkeypatch):
    monkeypatch.setattr(scanner_module.socket, "socket", FakeSocket(local_ip="192.168.7.23"))
    assert get_local_ip() == "192.168.7.23"


def test_get_local_ip_without_route(monkeypatch):
    monkeypatch.setattr(scanner_module.socket, "socket", FakeSocket(error=OSError("Network is unreachable")))
    with pytest.raises(SubnetDetectionError):
        get_local_ip()


def test_get_local_ip_loopback_only(monkeypatch):
    monkeypatch.setattr(scanner_module.socket, "socket", FakeSocket(local_ip="127.0.0.1"))
    with pytest.raises(SubnetDetectionError):
        get_local_ip()


class TestHostInventory:
    def test_keeps_discovery_order_without_duplicates(self):
        inventory = HostInventory(7892)
        assert inventory.add("10.0.0.9")
        assert inventory.add("10.0.0.2")
        assert not inventory.add("10.0.0.9")

        assert inventory.hosts() == ["10.0.0.9", "10.0.0.2"]
        assert list(inventory) == ["10.0.0.9", "10.0.0.2"]
        assert len(inventory) == 2
        assert "10.0.0.2" in inventory
        assert inventory.addresses() == [("10.0.0.9", 7892), ("10.0.0.2", 7892)]

    def test_concurrent_writers_do_not_lose_entries(self):
        inventory = HostInventory()

        def writer(offset):
            for i in range(200):
                inventory.add(f"10.{offset}.{i // 250}.{i % 250}")
                inventory.add(f"10.0.0.{i % 10}")

        threads = [threading.Thread(target=writer, args=(n + 1,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        hosts = inventory.hosts()
        assert len(hosts) == 8 * 200 + 10
        assert len(set(hosts)) == len(hosts)

    def test_completion(self):
        inventory = HostInventory()
        assert not inventory.complete
        inventory.mark_complete("no route")
        assert inventory.complete
        assert inventory.error == "no route"


@pytest.mark.asyncio
async def test_probe_refused_port_is_negative(free_port):
    scanner = PeerScanner(port=free_port, timeout=0.5)
    assert await scanner.probe("127.0.0.1") is False


@pytest.mark.asyncio
async def test_probe_times_out_close_to_configured_timeout(monkeypatch):
    async def never_connects(host, port):
        await asyncio.sleep(60)

    monkeypatch.setattr(scanner_module.asyncio, "open_connection", never_connects)
    scanner = PeerScanner(port=7892, timeout=0.2)

    loop = asyncio.get_running_loop()
    started = loop.time()
    assert await scanner.probe("192.0.2.1") is False
    elapsed = loop.time() - started

    assert 0.15 <= elapsed < 1.0


@pytest.mark.asyncio
async def test_probe_listening_port_is_positive(make_server):
    server = await make_server().start()
    try:
        assert await PeerScanner(port=server.port).probe("127.0.0.1") is True
    finally:
        await server.stop()


@pytest.mark.asyncio
async def test_scan_aborts_when_subnet_cannot_be_detected(monkeypatch, events):
    def no_subnet(probe_host, probe_port):
        raise SubnetDetectionError("Could not determine local IP: no route")

    probed = []

    async def fake_probe(self, host):
        probed.append(host)
        return True

    monkeypatch.setattr(scanner_module, "local_subnet", no_subnet)
    monkeypatch.setattr(PeerScanner, "probe", fake_probe)

    inventory = await PeerScanner(events=events).scan()

    assert probed == []
    assert len(inventory) == 0
    assert inventory.complete
    assert inventory.error
    assert events.hosts == []
    assert events.logs[-1] == (
        "[CLIENT] Could not determine local IP: no route. Local scan is not possible."
    )


@pytest.mark.asyncio
async def test_scan_records_each_responding_host_once(monkeypatch, events):
    responding = {"10.1.2.3", "10.1.2.200"}

    async def fake_probe(self, host):
        # Finish in reverse address order to show ordering follows completion
        await asyncio.sleep((255 - int(host.rsplit(".", 1)[1])) / 10000)
        return host in responding

    monkeypatch.setattr(PeerScanner, "probe", fake_probe)

    inventory = HostInventory(7892)
    inventory.add("10.1.2.3")
    scanner = PeerScanner(port=7892, events=events, subnet="10.1.2")
    result = await scanner.scan(inventory)

    assert result is inventory
    assert set(inventory) == responding
    assert len(inventory) == 2
    assert events.hosts == ["10.1.2.200"]
    assert "[CLIENT] Host found: 10.1.2.200" in events.logs


@pytest.mark.asyncio
async def test_scan_probes_every_candidate(monkeypatch, events):
    probed = []

    async def fake_probe(self, host):
        probed.append(host)
        return False

    monkeypatch.setattr(PeerScanner, "probe", fake_probe)
    inventory = await PeerScanner(port=7892, events=events, subnet="172.16.4.0/24").scan()

    assert sorted(probed) == sorted(candidate_hosts(parse_subnet("172.16.4")))
    assert len(inventory) == 0
    assert inventory.complete
    assert inventory.error is None
    # Unanswered probes are not reported
    assert events.logs == ["[CLIENT] Scanning local network for hosts on port 7892..."]
    assert events.hosts == []


@pytest.mark.asyncio
async def test_scan_finds_real_servers_on_loopback_subnet(share_root, events, make_events):
    first = FileServer(share_root, port=0, host="127.0.0.1", events=make_events())
    await first.start()
    second = FileServer(share_root, port=first.port, host="127.0.0.2", events=make_events())
    try:
        try:
            await second.start()
        except BindError:
            pytest.skip("127.0.0.2 is not available as a loopback address")

        scanner = PeerScanner(port=first.port, events=events, timeout=0.5, subnet="127.0.0")
        loop = asyncio.get_running_loop()
        started = loop.time()
        inventory = await scanner.scan()
        elapsed = loop.time() - started
    finally:
        await second.stop()
        await first.stop()

    assert sorted(inventory) == ["127.0.0.1", "127.0.0.2"]
    assert sorted(events.hosts) == ["127.0.0.1", "127.0.0.2"]
    assert elapsed < 5.0


@pytest.mark.asyncio
async def test_start_scan_returns_live_inventory(monkeypatch):
    release = asyncio.Event()

    async def fake_probe(self, host):
        if host == "10.9.9.9":
            return True
        await release.wait()
        return False

    monkeypatch.setattr(PeerScanner, "probe", fake_probe)
    inventory, task = PeerScanner(subnet="10.9.9").start_scan()

    await asyncio.sleep(0.05)
    assert "10.9.9.9" in inventory
    assert not inventory.complete

    release.set()
    assert await task is inventory
    assert inventory.complete

import asyncio

import pytest

from feedlease.core.exceptions import LeaseConflictError
from feedlease.core.models.config import HostConfig
from feedlease.core.service.host import PartitionHost
from tests.helpers import FakeClock, wait_until


@pytest.fixture
def host_clock():
    return FakeClock()


@pytest.fixture
def host(controller, lease_container, synchronizer, host_clock):
    config = HostConfig(
        host_name="host-1",
        expiration=60,
        renew_interval=17,
        discovery_interval=0.01,
        drain_timeout=1,
    )
    return PartitionHost(
        config=config,
        controller=controller,
        lease_container=lease_container,
        synchronizer=synchronizer,
        clock=host_clock,
    )


@pytest.mark.ut
def test_host_config_validation():
    with pytest.raises(ValueError):
        HostConfig(host_name="")
    with pytest.raises(ValueError):
        HostConfig(host_name="host-1", expiration=10, renew_interval=10)


@pytest.mark.ut
@pytest.mark.asyncio
async def test_discover_claims_free_and_expired_leases(host, controller, lease_manager, host_clock):
    await controller.initialize()
    lease_manager.add("P1")
    lease_manager.add("P2", owner="host-2", timestamp=host_clock.value)
    lease_manager.add("P3", owner="host-2", timestamp=host_clock.value - 61)

    assert await host.discover() == 2
    assert sorted(controller.owned_partitions) == ["P1", "P3"]
    assert lease_manager.count("acquire", "P2") == 0

    await controller.drain(1)


@pytest.mark.ut
@pytest.mark.asyncio
async def test_discover_skips_owned_and_absorbs_conflicts(host, controller, lease_manager):
    await controller.initialize()
    lease_manager.add("P1")
    lease_manager.add("P2")
    lease_manager.acquire_errors["P2"] = LeaseConflictError("P2", "owned by host-2")

    assert await host.discover() == 1
    assert await host.discover() == 0

    assert lease_manager.count("acquire", "P1") == 1
    assert lease_manager.count("acquire", "P2") == 2
    assert list(controller.owned_partitions) == ["P1"]

    await controller.drain(1)


@pytest.mark.ut
@pytest.mark.asyncio
async def test_run_resumes_discovers_and_drains(host, controller, lease_manager, supervisor_factory, host_clock):
    lease_manager.add("P0", owner="host-1", timestamp=host_clock.value)
    stop_event = asyncio.Event()

    task = asyncio.create_task(host.run(stop_event))
    await wait_until(lambda: "P0" in controller.owned_partitions)

    lease_manager.add("P1")
    await wait_until(lambda: "P1" in controller.owned_partitions)

    stop_event.set()
    await asyncio.wait_for(task, timeout=1)

    assert controller.shutdown_requested
    assert controller.owned_partitions == {}
    assert supervisor_factory.supervisors["P0"].finished.is_set()
    assert supervisor_factory.supervisors["P1"].finished.is_set()
    assert lease_manager.count("release", "P0") == 1
    assert lease_manager.count("release", "P1") == 1


@pytest.mark.ut
@pytest.mark.asyncio
async def test_discovery_loop_survives_failures(host, lease_container, caplog):
    calls = 0

    async def broken() -> list:
        nonlocal calls
        calls += 1
        raise ConnectionError("store unreachable")

    lease_container.get_all_leases = broken
    stop_event = asyncio.Event()

    task = asyncio.create_task(host.discovery_loop(stop_event))
    await wait_until(lambda: calls >= 2)
    stop_event.set()
    await asyncio.wait_for(task, timeout=1)

    assert "Lease discovery failed." in caplog.text

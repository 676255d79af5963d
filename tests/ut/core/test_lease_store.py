import pytest

from feedlease.core.exceptions import LeaseConflictError, LeaseLostError, LeaseStoreError
from feedlease.core.models.lease import Lease
from feedlease.core.service.leases import StorageLeaseStore


@pytest.fixture
def other_host(storage, codec, clock):
    return StorageLeaseStore(
        storage=storage,
        codec=codec,
        host_name="host-2",
        expiration=60.0,
        clock=clock,
    )


@pytest.mark.ut
@pytest.mark.asyncio
async def test_create_lease_if_not_exist(lease_store):
    created = await lease_store.create_lease_if_not_exist("P1", "ct-1")

    assert created.lease_token == "P1"
    assert created.owner == ""
    assert created.continuation_token == "ct-1"
    assert created.version == 1

    assert await lease_store.create_lease_if_not_exist("P1", None) is None
    assert await lease_store.get_lease("P1") == created


@pytest.mark.ut
@pytest.mark.asyncio
async def test_acquire_missing_lease_returns_none(lease_store):
    assert await lease_store.acquire(Lease(lease_token="P1")) is None


@pytest.mark.ut
@pytest.mark.asyncio
async def test_acquire_free_lease(lease_store, clock):
    lease = await lease_store.create_lease_if_not_exist("P1", None)
    clock.advance(5)

    acquired = await lease_store.acquire(lease)

    assert acquired.owner == "host-1"
    assert acquired.version == 2
    assert acquired.timestamp == clock.value
    assert await lease_store.get_owned_leases() == [acquired]


@pytest.mark.ut
@pytest.mark.asyncio
async def test_acquire_with_stale_version_conflicts(lease_store, other_host):
    lease = await lease_store.create_lease_if_not_exist("P1", None)
    await other_host.acquire(lease)

    with pytest.raises(LeaseConflictError):
        await lease_store.acquire(lease)


@pytest.mark.ut
@pytest.mark.asyncio
async def test_acquire_owned_by_live_host_conflicts(lease_store, other_host):
    lease = await lease_store.create_lease_if_not_exist("P1", None)
    taken = await other_host.acquire(lease)

    with pytest.raises(LeaseConflictError):
        await lease_store.acquire(taken)


@pytest.mark.ut
@pytest.mark.asyncio
async def test_acquire_expired_lease_takes_over(lease_store, other_host, clock):
    lease = await lease_store.create_lease_if_not_exist("P1", None)
    taken = await other_host.acquire(lease)
    clock.advance(61)

    acquired = await lease_store.acquire(taken)

    assert acquired.owner == "host-1"
    assert await other_host.get_owned_leases() == []


@pytest.mark.ut
@pytest.mark.asyncio
async def test_acquire_race_is_detected(lease_store, storage):
    lease = await lease_store.create_lease_if_not_exist("P1", None)
    storage.fail_next_cas = 1

    with pytest.raises(LeaseConflictError):
        await lease_store.acquire(lease)


@pytest.mark.ut
@pytest.mark.asyncio
async def test_acquire_keeps_supplied_properties(lease_store):
    lease = await lease_store.create_lease_if_not_exist("P1", None)
    lease.properties = {"tenant": "a"}

    acquired = await lease_store.acquire(lease)

    assert acquired.properties == {"tenant": "a"}


@pytest.mark.ut
@pytest.mark.asyncio
async def test_renew_and_checkpoint(lease_store, clock):
    lease = await lease_store.acquire(await lease_store.create_lease_if_not_exist("P1", None))
    clock.advance(10)

    renewed = await lease_store.renew(lease)
    checkpointed = await lease_store.checkpoint(lease, "ct-9")

    assert renewed.timestamp == clock.value
    assert checkpointed.continuation_token == "ct-9"
    assert checkpointed.version == lease.version + 2


@pytest.mark.ut
@pytest.mark.asyncio
async def test_owner_writes_retry_on_concurrent_change(lease_store, storage):
    lease = await lease_store.acquire(await lease_store.create_lease_if_not_exist("P1", None))
    storage.fail_next_cas = 2

    updated = await lease_store.checkpoint(lease, "ct-2")

    assert updated.continuation_token == "ct-2"


@pytest.mark.ut
@pytest.mark.asyncio
async def test_owner_writes_give_up_eventually(lease_store, storage):
    lease = await lease_store.acquire(await lease_store.create_lease_if_not_exist("P1", None))
    storage.fail_next_cas = 100

    with pytest.raises(LeaseStoreError):
        await lease_store.renew(lease)


@pytest.mark.ut
@pytest.mark.asyncio
async def test_writes_on_lost_lease_fail(lease_store, other_host, clock):
    lease = await lease_store.acquire(await lease_store.create_lease_if_not_exist("P1", None))
    clock.advance(61)
    await other_host.acquire(await other_host.get_lease("P1"))

    with pytest.raises(LeaseLostError):
        await lease_store.renew(lease)
    with pytest.raises(LeaseLostError):
        await lease_store.update_properties(lease)
    with pytest.raises(LeaseLostError):
        await lease_store.release(lease)


@pytest.mark.ut
@pytest.mark.asyncio
async def test_update_properties(lease_store):
    lease = await lease_store.acquire(await lease_store.create_lease_if_not_exist("P1", None))
    lease.properties = {"mode": "fast"}

    updated = await lease_store.update_properties(lease)

    assert updated.properties == {"mode": "fast"}
    assert (await lease_store.get_lease("P1")).properties == {"mode": "fast"}


@pytest.mark.ut
@pytest.mark.asyncio
async def test_release_is_idempotent(lease_store):
    lease = await lease_store.acquire(await lease_store.create_lease_if_not_exist("P1", None))

    await lease_store.release(lease)
    await lease_store.release(lease)
    await lease_store.release(Lease(lease_token="unknown"))

    stored = await lease_store.get_lease("P1")
    assert stored.owner == ""
    assert await lease_store.get_owned_leases() == []


@pytest.mark.ut
@pytest.mark.asyncio
async def test_delete_is_idempotent(lease_store):
    lease = await lease_store.create_lease_if_not_exist("P1", None)

    await lease_store.delete(lease)
    await lease_store.delete(lease)

    assert await lease_store.get_all_leases() == []


@pytest.mark.ut
@pytest.mark.asyncio
async def test_get_all_leases(lease_store, other_host):
    for token in ("P1", "P2", "P3"):
        await lease_store.create_lease_if_not_exist(token, None)
    await other_host.acquire(await other_host.get_lease("P2"))

    leases = await lease_store.get_all_leases()

    assert [lease.lease_token for lease in leases] == ["P1", "P2", "P3"]
    assert [lease.lease_token for lease in await other_host.get_owned_leases()] == ["P2"]

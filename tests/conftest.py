import pytest

from feedlease.core.controller import PartitionController
from feedlease.core.service.leases import StorageLeaseStore
from feedlease.infra.msgpack_codec import MsgPackLeaseCodec
from tests.fake.fake_leases import (
    FakeLeaseContainer,
    FakeLeaseManager,
    FakeSupervisorFactory,
    FakeSynchronizer,
)
from tests.fake.fake_storage import FakeStorage
from tests.helpers import FakeClock


@pytest.fixture
def lease_manager():
    return FakeLeaseManager(host_name="host-1")


@pytest.fixture
def lease_container(lease_manager):
    return FakeLeaseContainer(lease_manager)


@pytest.fixture
def supervisor_factory():
    return FakeSupervisorFactory()


@pytest.fixture
def synchronizer(lease_manager):
    return FakeSynchronizer(lease_manager)


@pytest.fixture
def controller(lease_container, lease_manager, supervisor_factory, synchronizer):
    return PartitionController(
        lease_container=lease_container,
        lease_manager=lease_manager,
        supervisor_factory=supervisor_factory,
        synchronizer=synchronizer,
    )


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def codec():
    return MsgPackLeaseCodec()


@pytest.fixture
def lease_store(storage, codec, clock):
    return StorageLeaseStore(
        storage=storage,
        codec=codec,
        host_name="host-1",
        expiration=60.0,
        clock=clock,
    )

import json
from functools import lru_cache

from pydantic import ValidationError

from feedlease.bootstrap.config.settings import FeedLeaseConfig
from feedlease.core.controller import PartitionController
from feedlease.core.helpers.utils import import_string
from feedlease.core.service.host import PartitionHost
from feedlease.core.service.leases import StorageLeaseStore
from feedlease.core.service.supervisor import PartitionSupervisorFactoryImpl
from feedlease.core.service.synchronizer import PartitionSynchronizerImpl
from feedlease.infra.lmdb_storage.aiobackend import LMDBStorage
from feedlease.infra.msgpack_codec import MsgPackLeaseCodec


@lru_cache
def get_storage() -> LMDBStorage:
    config = get_config()
    return LMDBStorage.open(config.storage.data_dir)


@lru_cache
def get_lease_store() -> StorageLeaseStore:
    config = get_config()
    return StorageLeaseStore(
        storage=get_storage(),
        codec=MsgPackLeaseCodec(),
        host_name=config.host.name,
        expiration=config.lease.expiration,
    )


@lru_cache
def get_host() -> PartitionHost:
    config = get_config()
    store = get_lease_store()

    topology = import_string(config.app.topology)()
    processor_factory = import_string(config.app.processor_factory)()

    synchronizer = PartitionSynchronizerImpl(
        topology=topology,
        lease_container=store,
        lease_manager=store,
    )
    supervisor_factory = PartitionSupervisorFactoryImpl(
        lease_manager=store,
        processor_factory=processor_factory,
        renew_interval=config.lease.renew_interval,
    )
    controller = PartitionController(
        lease_container=store,
        lease_manager=store,
        supervisor_factory=supervisor_factory,
        synchronizer=synchronizer,
    )

    return PartitionHost(
        config=config.get_host_config(),
        controller=controller,
        lease_container=store,
        synchronizer=synchronizer,
    )


@lru_cache
def get_config() -> FeedLeaseConfig:
    try:
        return FeedLeaseConfig()  # type: ignore[call-arg]
    except FileNotFoundError as ex:
        raise SystemExit(f"Provide a correct configuration file path: {ex}")
    except ValidationError as ex:
        msg = ["Configuration validation failed:"]
        errs = json.loads(ex.json())
        for err in errs:
            msg.append(f"  {'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}")
        raise SystemExit("\n".join(msg))

import msgpack

from feedlease.core.models.lease import Lease


class MsgPackLeaseCodec:
    """
    MsgPack-based implementation of the LeaseCodec interface.

    Lease fields are written in a fixed order and properties are sorted
    by key, so equal leases always encode to the same bytes.
    """

    def encode(self, lease: Lease) -> bytes:
        data = lease.to_dict()
        data["properties"] = dict(sorted(data["properties"].items()))
        return msgpack.packb(data, use_bin_type=True)

    def decode(self, data: bytes) -> Lease:
        return Lease.from_dict(msgpack.unpackb(data, raw=False))

from dataclasses import dataclass


@dataclass
class HostConfig:
    """
    Runtime parameters of a host participating in a change-feed lease group.
    """
    host_name: str
    """
    Unique and stable identifier of this host. It is written as the
    owner of every lease the host acquires.
    """

    expiration: float = 60.0
    """
    Seconds after which a lease that was not renewed by its owner is
    considered abandoned and can be taken over by another host.
    """

    renew_interval: float = 17.0
    """
    Seconds between two renewals of an owned lease. Must be well below
    `expiration`, otherwise a healthy owner loses its leases.
    """

    discovery_interval: float = 13.0
    """
    Seconds between two passes looking for unowned or expired leases.
    """

    drain_timeout: float = 10.0
    """
    Maximum time (in seconds) allowed for partition workers to stop after
    the host was asked to shut down. Workers still running after this
    timeout are abandoned; their leases expire on their own.
    """

    def __post_init__(self) -> None:
        if not self.host_name:
            raise ValueError("host_name must not be empty")
        if self.renew_interval >= self.expiration:
            raise ValueError("renew_interval must be lower than expiration")

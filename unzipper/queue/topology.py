"""Redis topology resolution for the Celery broker.

Resolves once at startup which Redis topology the job queue uses and
derives everything the queue layer needs to address keys consistently:

  single     - one Redis node (host / port / database)
  clustered  - a Redis Cluster (list of ``host:port`` seed nodes)

Hash-tag namespacing:
  Redis Cluster shards keys by the CRC16 of the key, or of the substring
  inside the first ``{...}`` when one is present. Queue operations touch
  several keys atomically (MULTI/EXEC, Lua), which fails with CROSSSLOT
  unless all keys live in the same slot. The clustered namespace wraps the
  shared segment in a fixed hash tag so every key this worker creates
  lands in one slot. The single-node namespace never carries a tag.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from unzipper.core.config import QueueSettings
from unzipper.core.errors import ConfigError

logger = logging.getLogger(__name__)

SINGLE = "single"
CLUSTERED = "clustered"
CONNECTION_TYPES = (SINGLE, CLUSTERED)

QUEUE_NAMESPACE = "jobqueue"
CLUSTER_HASH_TAG = "{artifact-unzip}"


@dataclass(frozen=True)
class ConnectionTopology:
    """Resolved, immutable connection parameters for the queue backing store."""

    connection_type: str
    connection_options: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )
    namespace: str = QUEUE_NAMESPACE
    prefix: str = ""

    @property
    def is_clustered(self) -> bool:
        return self.connection_type == CLUSTERED


def resolve_topology(queue: QueueSettings) -> ConnectionTopology:
    """Derive the topology from settings.

    Raises:
        ConfigError: If ``connection_type`` is not ``single`` or ``clustered``.
    """
    connection_type = queue.connection_type
    if connection_type not in CONNECTION_TYPES:
        raise ConfigError(
            f"'{connection_type}' is not supported in connection_type, "
            f"'{SINGLE}' or '{CLUSTERED}' can be set for QUEUE_CONNECTION_TYPE"
        )

    options: dict[str, Any] = {
        "password": queue.password,
        "tls": queue.tls,
    }

    if connection_type == CLUSTERED:
        options["cluster_hosts"] = tuple(queue.cluster_hosts)
        options["slots_refresh_timeout"] = queue.slots_refresh_timeout
        namespace = f"{QUEUE_NAMESPACE}:{CLUSTER_HASH_TAG}"
    else:
        options["host"] = queue.host
        options["port"] = queue.port
        options["database"] = queue.database
        namespace = QUEUE_NAMESPACE

    topology = ConnectionTopology(
        connection_type=connection_type,
        connection_options=MappingProxyType(options),
        namespace=namespace,
        prefix=queue.prefix or "",
    )
    logger.info(
        "Queue topology resolved: type=%s namespace=%s prefix=%r",
        topology.connection_type, topology.namespace, topology.prefix,
    )
    return topology


def key_namespace(topology: ConnectionTopology) -> str:
    """Return the string prepended to every broker key.

    Used as the kombu Redis transport ``global_keyprefix``.
    """
    return f"{topology.prefix}{topology.namespace}:"


def _split_host(host: str) -> tuple[str, int]:
    name, sep, port = host.rpartition(":")
    if not sep or not name or not port.isdigit():
        raise ConfigError(f"Invalid cluster host {host!r}, expected 'host:port'")
    return name, int(port)


def broker_url(topology: ConnectionTopology) -> str:
    """Build the Celery broker URL for the topology.

    Passwords are embedded in the URL; never log the return value.
    Clustered topologies yield a ``;``-separated kombu failover list of the
    seed nodes.
    """
    opts = topology.connection_options
    scheme = "rediss" if opts.get("tls") else "redis"
    auth = f":{opts['password']}@" if opts.get("password") else ""

    if topology.is_clustered:
        if not opts["cluster_hosts"]:
            raise ConfigError("QUEUE_CLUSTER_HOSTS must list at least one host:port")
        return ";".join(
            f"{scheme}://{auth}{host}" for host in opts["cluster_hosts"]
        )
    return f"{scheme}://{auth}{opts['host']}:{opts['port']}/{opts['database']}"


def transport_options(topology: ConnectionTopology) -> dict[str, Any]:
    """Kombu Redis transport options carrying the key namespace."""
    return {"global_keyprefix": key_namespace(topology)}


def build_redis_client(topology: ConnectionTopology):
    """Create a redis-py client matching the topology.

    Returns ``redis.Redis`` for a single node and
    ``redis.cluster.RedisCluster`` for a cluster.
    """
    import redis
    from redis.cluster import ClusterNode, RedisCluster

    opts = topology.connection_options

    if topology.is_clustered:
        nodes = [ClusterNode(*_split_host(h)) for h in opts["cluster_hosts"]]
        return RedisCluster(
            startup_nodes=nodes,
            password=opts.get("password"),
            ssl=bool(opts.get("tls")),
            # slots_refresh_timeout is configured in milliseconds
            socket_connect_timeout=opts["slots_refresh_timeout"] / 1000,
        )

    return redis.Redis(
        host=opts["host"],
        port=opts["port"],
        db=opts["database"],
        password=opts.get("password"),
        ssl=bool(opts.get("tls")),
    )

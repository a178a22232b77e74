"""Container registry configuration values."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path

from .env import first_env, get_env, get_env_float
from .http_client import DEFAULT_TIMEOUT_SECONDS, HttpClientConfig

log = getLogger(__name__)

REGISTRIES_CONF_ENV = ("CONTAINERS_REGISTRIES_CONF", "REGISTRIES_CONFIG_PATH")
DEFAULT_INSECURE_HOSTS = frozenset({"localhost", "127.0.0.1", "[::1]"})


@dataclass(frozen=True, slots=True)
class RegistryConfig:
    """Settings for resolving image references against registries."""

    client: HttpClientConfig
    auth_files: tuple[Path, ...] = ()
    hardened: bool = False
    insecure_hosts: frozenset[str] = field(default_factory=lambda: DEFAULT_INSECURE_HOSTS)


def discover_auth_files() -> tuple[Path, ...]:
    """Return candidate credential files in lookup order.

    Mirrors the lookup of the docker CLI and the containers tooling: an explicit
    ``REGISTRY_AUTH_FILE`` wins, then the runtime auth file, then the docker
    client configuration.
    """

    candidates: list[Path] = []
    explicit = get_env("REGISTRY_AUTH_FILE")
    if explicit:
        candidates.append(Path(explicit))
    runtime_dir = get_env("XDG_RUNTIME_DIR")
    if runtime_dir:
        candidates.append(Path(runtime_dir) / "containers" / "auth.json")
    config_home = get_env("XDG_CONFIG_HOME")
    config_base = Path(config_home) if config_home else Path.home() / ".config"
    candidates.append(config_base / "containers" / "auth.json")
    docker_config = get_env("DOCKER_CONFIG")
    docker_base = Path(docker_config) if docker_config else Path.home() / ".docker"
    candidates.append(docker_base / "config.json")

    unique: list[Path] = []
    for path in candidates:
        resolved = path.expanduser()
        if resolved not in unique:
            unique.append(resolved)
    return tuple(unique)


def _location_host(location: str) -> str:
    host = location.split("://", 1)[-1].split("/", 1)[0]
    if host.startswith("["):
        return host.split("]", 1)[0] + "]"
    return host.split(":", 1)[0]


def load_insecure_hosts(path: Path) -> frozenset[str]:
    """Hosts marked ``insecure`` in a containers ``registries.conf`` file.

    Both the ``[[registry]]`` tables and the older ``[registries.insecure]`` list
    are honoured.
    """

    with path.open("rb") as handle:
        document = tomllib.load(handle)
    locations: list[str] = []
    for entry in document.get("registry", []):
        if isinstance(entry, dict) and entry.get("insecure") is True:
            location = entry.get("location") or entry.get("prefix")
            if isinstance(location, str) and location:
                locations.append(location)
    legacy = document.get("registries")
    if isinstance(legacy, dict):
        insecure = legacy.get("insecure")
        if isinstance(insecure, dict):
            names = insecure.get("registries", [])
            locations.extend(name for name in names if isinstance(name, str) and name)
    return frozenset(_location_host(location) for location in locations)


def get_insecure_hosts() -> frozenset[str]:
    conf = first_env(REGISTRIES_CONF_ENV)
    if conf is None:
        return DEFAULT_INSECURE_HOSTS
    path = Path(conf).expanduser()
    try:
        configured = load_insecure_hosts(path)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        log.warning("Failed to load registries config %s: %s", path, exc)
        return DEFAULT_INSECURE_HOSTS
    log.debug("Insecure registries from %s: %s", path, sorted(configured))
    return DEFAULT_INSECURE_HOSTS | configured


def get_registry_config(*, hardened: bool = False) -> RegistryConfig:
    timeout = get_env_float("SOURCE_POLICY_TIMEOUT", default=DEFAULT_TIMEOUT_SECONDS)
    return RegistryConfig(
        client=HttpClientConfig(name="registry", timeout_seconds=timeout),
        auth_files=discover_auth_files(),
        hardened=hardened,
        insecure_hosts=get_insecure_hosts(),
    )

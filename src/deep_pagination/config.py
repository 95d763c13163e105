import os
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

DEFAULT_TARGETS = {
    "Postgres": "http://localhost:8081",
    "MySQL": "http://localhost:8082",
    "Valkey": "http://localhost:8083",
}

DEFAULT_VUS = 10
DEFAULT_ITERATIONS = 1
DEFAULT_MAX_DURATION = "10m"


class ConfigError(ValueError):
    pass


class UnknownTarget(LookupError):
    def __init__(self, name: str, known=()):
        self.name = name
        self.known = tuple(known)
        super().__init__(f"Unknown target {name!r} (registered: {', '.join(self.known) or 'none'})")


def env_bool(name, default=False):
    return os.environ.get(name, str(default)).strip().lower() in ("true", "yes", "on", "1")


def env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def env_float(name, default):
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def env_csv(name, default_values):
    raw = os.environ.get(name, "")
    if not raw.strip():
        return list(default_values)
    values = [x.strip() for x in raw.split(",") if x.strip()]
    return values or list(default_values)


def parse_duration(s: Optional[str]) -> Optional[float]:
    """
    Convert a duration string to seconds.
    Valid examples:
      - "30"  -> 30 seconds
      - "45s" -> 45 seconds
      - "5m"  -> 300 seconds
      - "2h"  -> 7200 seconds
    Returns None if s is None or an empty string.
    Raises ConfigError if the format is invalid or the value is negative.
    """
    if s is None:
        return None
    raw = s.strip().lower()
    if not raw:
        return None
    value, multiplier = raw, 1
    # suffixes
    if raw[-1] in ("s", "m", "h"):
        value, multiplier = raw[:-1], {"s": 1, "m": 60, "h": 3600}[raw[-1]]
    try:
        seconds = float(value) * multiplier
    except ValueError:
        raise ConfigError(f"Invalid duration: {s!r}") from None
    if seconds < 0:
        raise ConfigError(f"Duration must not be negative: {s!r}")
    return seconds


def env_duration(name, default):
    raw = os.environ.get(name, "")
    if not raw.strip():
        raw = default
    try:
        return parse_duration(raw)
    except ConfigError as exc:
        raise ConfigError(f"{name}: {exc}") from None


def normalize_name(name: str) -> str:
    return name.strip().lower()


@dataclass(frozen=True)
class Target:
    name: str
    base_address: str
    display_name: Optional[str] = field(default=None, compare=False)

    @property
    def label(self) -> str:
        return self.display_name or self.name.capitalize()


def parse_targets(raw: str) -> Dict[str, str]:
    """
    Parse ``name=url,name=url`` into an ordered name -> base address mapping.

    Names keep their spelling; the registry matches them case-insensitively
    and uses a mixed-case spelling (``MySQL``) as the display label.
    """
    targets = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        if "=" not in pair:
            raise ConfigError(f"Invalid target entry {pair!r}, expected name=url")
        name, url = pair.split("=", 1)
        name, url = name.strip(), url.strip()
        if not name or not url:
            raise ConfigError(f"Invalid target entry {pair!r}, expected name=url")
        targets[name] = url
    return targets


class TargetRegistry:
    """Read-only name -> Target mapping, built once at startup."""

    def __init__(self, targets: Dict[str, str]):
        self._targets = {}
        for raw_name, base_address in targets.items():
            name = normalize_name(raw_name)
            display_name = raw_name.strip() if raw_name.strip() != name else None
            self._targets[name] = Target(name=name, base_address=base_address.rstrip("/"), display_name=display_name)

    @classmethod
    def from_env(cls) -> "TargetRegistry":
        raw = os.environ.get("PAGINATION_TARGETS", "").strip()
        if not raw:
            return cls(DEFAULT_TARGETS)
        targets = parse_targets(raw)
        if not targets:
            raise ConfigError("PAGINATION_TARGETS does not define any target")
        return cls(targets)

    def resolve(self, name: str) -> Target:
        try:
            return self._targets[normalize_name(name)]
        except KeyError:
            raise UnknownTarget(name, self._targets) from None

    def names(self) -> List[str]:
        return list(self._targets)

    def __iter__(self) -> Iterator[Target]:
        return iter(self._targets.values())

    def __len__(self):
        return len(self._targets)

    def __contains__(self, name):
        return normalize_name(name) in self._targets


@dataclass(frozen=True)
class ScenarioConfig:
    target: Target
    virtual_users: int
    iterations_per_vu: int
    max_duration_seconds: float


def load_scenarios(registry: TargetRegistry) -> List[ScenarioConfig]:
    """
    Build one ScenarioConfig per selected target.

    Global defaults come from PAGINATION_VUS, PAGINATION_ITERATIONS and
    PAGINATION_MAX_DURATION; PAGINATION_<NAME>_* overrides them per target.
    PAGINATION_SCENARIOS restricts the run to a subset of registered targets
    and fails with UnknownTarget on a name that is not registered.
    """
    vus = max(1, env_int("PAGINATION_VUS", DEFAULT_VUS))
    iterations = max(1, env_int("PAGINATION_ITERATIONS", DEFAULT_ITERATIONS))
    max_duration = env_duration("PAGINATION_MAX_DURATION", DEFAULT_MAX_DURATION)

    selected = env_csv("PAGINATION_SCENARIOS", registry.names())
    scenarios = []
    seen = set()
    for name in selected:
        target = registry.resolve(name)
        if target.name in seen:
            continue
        seen.add(target.name)
        prefix = f"PAGINATION_{target.name.upper().replace('-', '_')}_"
        scenarios.append(
            ScenarioConfig(
                target=target,
                virtual_users=max(1, env_int(prefix + "VUS", vus)),
                iterations_per_vu=max(1, env_int(prefix + "ITERATIONS", iterations)),
                max_duration_seconds=env_duration(prefix + "MAX_DURATION", str(max_duration)),
            )
        )
    return scenarios

"""
Target registry: the flattened, swappable view of the configured services.
"""

from dataclasses import dataclass, field

from statuskeeper.config import Config
from statuskeeper.core import ServiceTarget
from statuskeeper.logging_config import get_logger

logger = get_logger(__name__)


def flatten_targets(config: Config) -> tuple[ServiceTarget, ...]:
    """Turn categories into an ordered tuple of probe targets."""
    return tuple(
        ServiceTarget(
            url=service.url,
            name=service.name,
            description=service.description,
            expected_response_code=service.expected_response_code,
            hide_url=service.hide_url,
            category=category.name,
        )
        for category in config.categories
        for service in category.services
    )


@dataclass(frozen=True)
class RegistryView:
    """One consistent snapshot together with its derived target lookups."""
    snapshot: Config
    targets: tuple[ServiceTarget, ...]
    by_url: dict[str, ServiceTarget] = field(compare=False)

    @classmethod
    def build(cls, snapshot: Config) -> "RegistryView":
        targets = flatten_targets(snapshot)
        return cls(
            snapshot=snapshot,
            targets=targets,
            by_url={target.url: target for target in targets},
        )


@dataclass(frozen=True)
class TargetDiff:
    """URL-level difference between two snapshots."""
    added: frozenset[str]
    removed: frozenset[str]
    changed: frozenset[str]

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


def diff_targets(old: Config, new: Config) -> TargetDiff:
    """Compare the targets of two snapshots by URL."""
    old_targets = {t.url: t for t in flatten_targets(old)}
    new_targets = {t.url: t for t in flatten_targets(new)}

    return TargetDiff(
        added=frozenset(new_targets.keys() - old_targets.keys()),
        removed=frozenset(old_targets.keys() - new_targets.keys()),
        changed=frozenset(
            url for url in old_targets.keys() & new_targets.keys()
            if old_targets[url] != new_targets[url]
        ),
    )


class TargetRegistry:
    """
    Holds the current configuration snapshot and its targets.

    Readers take the whole ``RegistryView`` with ``current()``; a swap
    replaces that reference in a single assignment, so a probe cycle
    always works against one snapshot in full.
    """

    def __init__(self, snapshot: Config) -> None:
        self._view = RegistryView.build(snapshot)

    def current(self) -> RegistryView:
        """Return the active view."""
        return self._view

    @property
    def snapshot(self) -> Config:
        return self._view.snapshot

    @property
    def targets(self) -> tuple[ServiceTarget, ...]:
        return self._view.targets

    def get(self, url: str) -> ServiceTarget | None:
        """Look up a target by URL."""
        return self._view.by_url.get(url)

    def swap(self, snapshot: Config) -> bool:
        """
        Install a new snapshot if it differs from the active one.

        Returns:
            True if the snapshot changed and was installed
        """
        old = self._view.snapshot
        if snapshot == old:
            return False

        diff = diff_targets(old, snapshot)
        self._view = RegistryView.build(snapshot)
        logger.info(
            "Configuration changed: %s target(s), %s added, %s removed, %s changed",
            len(self._view.targets),
            len(diff.added),
            len(diff.removed),
            len(diff.changed)
        )
        return True

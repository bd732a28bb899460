"""Per-repository plugin install state, persisted in the `repositories` table.

Every state change goes through a FiniteStateMachine built from the stored
token; an entry listener writes the new token back to the row. Nothing is
committed here: the caller's transaction boundary controls durability.
"""
from __future__ import annotations
import logging
from typing import Dict, Iterable, Mapping, Optional

from sqlalchemy import select, func, update

from batch_installer import get_db
from batch_installer.constants.plugin_state import (
    PluginState,
    StateLike,
    build_plugin_state_machine,
    parse_plugin_state,
)
from batch_installer.models.installed_plugin import InstalledPlugin
from batch_installer.models.repository import Repository
from batch_installer.services.detection import DetectionResult, detect_plugin
from batch_installer.utils.fsm import FiniteStateMachine, InvalidState

logger = logging.getLogger(__name__)


class RepositoryNotFound(LookupError):
    def __init__(self, full_name: str):
        self.full_name = full_name
        super().__init__(f"Repository not found: {full_name}")


def split_full_name(full_name: str) -> tuple[str, str]:
    """Validate `owner/repo` and return its two parts."""
    parts = (full_name or '').strip().strip('/').split('/')
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Repository must be 'owner/repo', got {full_name!r}")
    return parts[0], parts[1]


class StateManager:
    def __init__(self, session=None):
        self.session = session if session is not None else get_db()

    # --- repository rows ---
    def find_repository(self, full_name: str) -> Optional[Repository]:
        return self.session.execute(select(Repository).where(Repository.full_name == full_name)).scalar_one_or_none()

    def require_repository(self, full_name: str) -> Repository:
        repo = self.find_repository(full_name)
        if repo is None:
            raise RepositoryNotFound(full_name)
        return repo

    def ensure_repository(self, full_name: str) -> Repository:
        owner, name = split_full_name(full_name)
        full_name = f"{owner}/{name}"
        repo = self.find_repository(full_name)
        if repo is None:
            repo = Repository(full_name=full_name, owner=owner, name=name, state=PluginState.UNKNOWN.value, plugin_headers={})
            self.session.add(repo)
            self.session.flush()
            logger.info('Registered repository %s', full_name)
        return repo

    # --- state machine ---
    def machine_for(self, repo: Repository) -> FiniteStateMachine[PluginState]:
        try:
            fsm = build_plugin_state_machine(repo.state)
        except InvalidState:
            logger.warning('Repository %s has unrecognised state %r; treating as unknown', repo.full_name, repo.state)
            fsm = build_plugin_state_machine(PluginState.UNKNOWN)

        def _persist(state: PluginState) -> None:
            previous = repo.state
            repo.state = state.value
            if state is not PluginState.ERROR:
                repo.last_error = None
            logger.info('Repository %s: %s -> %s', repo.full_name, previous, state.value)

        for state in PluginState:
            fsm.on(state, _persist)
        return fsm

    def get_state(self, full_name: str, force_refresh: bool = False) -> PluginState:
        repo = self.find_repository(full_name)
        if force_refresh or repo is None or repo.state == PluginState.UNKNOWN.value:
            return self.refresh_state(full_name)
        try:
            return parse_plugin_state(repo.state)
        except InvalidState:
            return PluginState.UNKNOWN

    def set_state(self, full_name: str, state: StateLike) -> PluginState:
        """Guarded state change; raises InvalidTransition when the edge is not allowed."""
        repo = self.require_repository(full_name)
        target = parse_plugin_state(state)
        self.machine_for(repo).transition_to(target)
        self.session.flush()
        return target

    def refresh_state(self, full_name: str) -> PluginState:
        repo = self.ensure_repository(full_name)
        fsm = self.machine_for(repo)
        if fsm.get_state() is not PluginState.CHECKING:
            fsm.transition_to(PluginState.CHECKING)
        try:
            determined = self._determine_plugin_state(repo)
        except Exception as exc:
            logger.exception('State detection failed for %s', repo.full_name)
            fsm.transition_to(PluginState.ERROR)
            repo.last_error = str(exc) or exc.__class__.__name__
            self.session.flush()
            return PluginState.ERROR
        fsm.transition_to(determined)
        self.session.flush()
        return determined

    def batch_refresh_states(self, repositories: Iterable[str]) -> Dict[str, PluginState]:
        return {name: self.refresh_state(name) for name in repositories}

    def get_batch_states(self, repositories: Iterable[str], force_refresh: bool = False) -> Dict[str, PluginState]:
        return {name: self.get_state(name, force_refresh) for name in repositories}

    def scan_repository(self, full_name: str, files: Mapping[str, str]) -> DetectionResult:
        """Run header detection on submitted files, store the outcome and refresh the state."""
        repo = self.ensure_repository(full_name)
        result = detect_plugin(repo.full_name, files)
        repo.main_file = result.plugin_file
        repo.plugin_headers = dict(result.headers)
        self.refresh_state(repo.full_name)
        return result

    def clear_cache(self) -> int:
        """Forget every determined state; repositories are re-initialised to unknown."""
        res = self.session.execute(
            update(Repository).values(state=PluginState.UNKNOWN.value, last_error=None)
        )
        self.session.flush()
        self.session.expire_all()
        logger.info('Cleared cached plugin states for %d repositories', res.rowcount or 0)
        return res.rowcount or 0

    def get_statistics(self) -> Dict[str, int]:
        stats = {'total': 0}
        stats.update({state.value: 0 for state in PluginState})
        rows = self.session.execute(select(Repository.state, func.count(Repository.id)).group_by(Repository.state)).all()
        for token, count in rows:
            stats['total'] += count
            # unrecognised tokens are read back as unknown by machine_for()
            stats[token if token in stats and token != 'total' else PluginState.UNKNOWN.value] += count
        return stats

    # --- detection ---
    def find_installed_plugin(self, slug: str) -> Optional[InstalledPlugin]:
        return self._match_installed_plugin(slug)[0]

    def _match_installed_plugin(self, slug: str):
        """Return (plugin, exact); exact is False when only the file-name prefix matched."""
        plugins = self.session.execute(select(InstalledPlugin).order_by(InstalledPlugin.plugin_file.asc())).scalars().all()
        for plugin in plugins:
            directory = plugin.plugin_file.split('/', 1)[0] if '/' in plugin.plugin_file else None
            if directory == slug or plugin.plugin_file == f"{slug}.php":
                return plugin, True
        for plugin in plugins:
            if plugin.plugin_file.startswith(slug):
                return plugin, False
        return None, False

    def _determine_plugin_state(self, repo: Repository) -> PluginState:
        plugin, exact = self._match_installed_plugin(repo.slug)
        if plugin is None:
            return PluginState.AVAILABLE if repo.plugin_headers else PluginState.NOT_PLUGIN
        # a prefix match ("foo" vs "foobar/foobar.php") never claims ownership
        if exact and plugin.repository_id is None:
            plugin.repository_id = repo.id
        return PluginState.INSTALLED_ACTIVE if plugin.active else PluginState.INSTALLED_INACTIVE


__all__ = ['StateManager', 'RepositoryNotFound', 'split_full_name']

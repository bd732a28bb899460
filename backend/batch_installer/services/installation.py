from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select

from batch_installer.constants.plugin_state import PluginState
from batch_installer.models.installed_plugin import InstalledPlugin
from batch_installer.models.repository import Repository
from batch_installer.services.state_manager import StateManager
from batch_installer.utils.fsm import FSMError, InvalidTransition

logger = logging.getLogger(__name__)


class InstallationError(Exception):
    pass


class PluginNotFound(InstallationError, LookupError):
    def __init__(self, plugin_file: str):
        self.plugin_file = plugin_file
        super().__init__(f"Plugin not installed: {plugin_file}")


class PluginInstallationService:
    """Install / activate / deactivate plugins, moving repositories through their state machine.

    Single-item operations raise (InvalidTransition, InstallationError, RepositoryNotFound);
    batch operations report a result per item and keep going.
    """

    def __init__(self, state_manager: Optional[StateManager] = None):
        self.states = state_manager or StateManager()
        self.session = self.states.session

    def find_plugin(self, plugin_file: str) -> Optional[InstalledPlugin]:
        return self.session.execute(select(InstalledPlugin).where(InstalledPlugin.plugin_file == plugin_file)).scalar_one_or_none()

    def require_plugin(self, plugin_file: str) -> InstalledPlugin:
        plugin = self.find_plugin(plugin_file)
        if plugin is None:
            raise PluginNotFound(plugin_file)
        return plugin

    def install_plugin(self, full_name: str) -> Dict[str, Any]:
        repo = self.states.require_repository(full_name)
        fsm = self.states.machine_for(repo)
        if not fsm.can_transition(PluginState.INSTALLED_INACTIVE):
            raise InvalidTransition(fsm.get_state(), PluginState.INSTALLED_INACTIVE)
        if not repo.main_file:
            raise InstallationError(f"No plugin main file detected for {repo.full_name}")
        plugin_file = f"{repo.slug}/{repo.main_file}"
        if self.find_plugin(plugin_file) is not None:
            raise InstallationError(f"Plugin already installed: {plugin_file}")

        fsm.transition_to(PluginState.INSTALLED_INACTIVE)
        headers = repo.plugin_headers or {}
        plugin = InstalledPlugin(
            plugin_file=plugin_file,
            repository_id=repo.id,
            slug=repo.slug,
            name=headers.get('Plugin Name') or repo.name,
            version=headers.get('Version'),
            active=False,
        )
        self.session.add(plugin)
        self.session.flush()
        logger.info('Installed %s as %s', repo.full_name, plugin_file)
        return {'repository': repo.full_name, 'plugin_file': plugin_file, 'state': repo.state, 'activated': False}

    def install_and_activate(self, full_name: str, activate: bool = False) -> Dict[str, Any]:
        result = self.install_plugin(full_name)
        if activate:
            activated = self.activate_plugin(result['plugin_file'])
            result.update(state=activated['state'], activated=True)
        return result

    def activate_plugin(self, plugin_file: str) -> Dict[str, Any]:
        return self._set_active(plugin_file, True)

    def deactivate_plugin(self, plugin_file: str) -> Dict[str, Any]:
        return self._set_active(plugin_file, False)

    def _set_active(self, plugin_file: str, active: bool) -> Dict[str, Any]:
        plugin = self.require_plugin(plugin_file)
        repo = self.session.get(Repository, plugin.repository_id) if plugin.repository_id else None
        target = PluginState.INSTALLED_ACTIVE if active else PluginState.INSTALLED_INACTIVE
        if repo is not None:
            self.states.machine_for(repo).transition_to(target)
        elif plugin.active == active:
            raise InstallationError(f"Plugin {plugin_file} is already {'active' if active else 'inactive'}")
        plugin.active = active
        self.session.flush()
        logger.info('%s %s', 'Activated' if active else 'Deactivated', plugin_file)
        return {
            'plugin_file': plugin_file,
            'repository': repo.full_name if repo is not None else None,
            'state': target.value,
            'active': active,
        }

    # --- batch ---
    def batch_install(self, repositories: Iterable[str], activate: bool = False) -> List[Dict[str, Any]]:
        results = []
        for full_name in repositories:
            try:
                outcome = self.install_and_activate(full_name, activate)
            except (FSMError, InstallationError, LookupError) as exc:
                logger.warning('Batch install of %s failed: %s', full_name, exc)
                results.append({'repository': full_name, 'success': False, 'error': str(exc)})
                continue
            results.append(dict(outcome, success=True))
        return results

    def batch_activate(self, plugin_files: Iterable[str]) -> List[Dict[str, Any]]:
        return self._batch_toggle(plugin_files, True)

    def batch_deactivate(self, plugin_files: Iterable[str]) -> List[Dict[str, Any]]:
        return self._batch_toggle(plugin_files, False)

    def _batch_toggle(self, plugin_files: Iterable[str], active: bool) -> List[Dict[str, Any]]:
        results = []
        for plugin_file in plugin_files:
            try:
                outcome = self._set_active(plugin_file, active)
            except (FSMError, InstallationError) as exc:
                logger.warning('Batch %s of %s failed: %s', 'activate' if active else 'deactivate', plugin_file, exc)
                results.append({'plugin_file': plugin_file, 'success': False, 'error': str(exc)})
                continue
            results.append(dict(outcome, success=True))
        return results


__all__ = ['PluginInstallationService', 'InstallationError', 'PluginNotFound']

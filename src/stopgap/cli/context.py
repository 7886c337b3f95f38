from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console

from stopgap.application.services.project_service import ProjectService
from stopgap.application.wiring import RemediationServices, build_services
from stopgap.core.config import AppPaths, RemediationSettings
from stopgap.core.errors import ProjectNotInitializedError


@dataclass(slots=True)
class CLIContext:
    paths: AppPaths
    settings: RemediationSettings
    console: Console

    def services(self) -> RemediationServices:
        project_service = ProjectService(self.paths)
        if not project_service.is_initialized():
            raise ProjectNotInitializedError(
                f"Project is not initialized. Run 'stopgap init' first in {self.paths.project_root}"
            )
        project_service.init_project()
        return build_services(self.paths, self.settings)

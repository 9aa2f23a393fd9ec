"""Detection of the target environment and its project skills directory."""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, Optional, Union


class IdeType(str, Enum):
    VSCODE = "vscode"
    CURSOR = "cursor"
    TRAE = "trae"
    ANTIGRAVITY = "antigravity"
    QODER = "qoder"
    WINDSURF = "windsurf"
    CODEBUDDY = "codebuddy"
    SKILLS = "skills"


@dataclass(frozen=True)
class IdeConfig:
    type: IdeType
    skills_dir: str


# Insertion order is the display order of project groups.
IDE_CONFIGS: Dict[IdeType, IdeConfig] = {
    # https://skills.sh/
    IdeType.SKILLS: IdeConfig(IdeType.SKILLS, ".agents/skills"),
    IdeType.ANTIGRAVITY: IdeConfig(IdeType.ANTIGRAVITY, ".agent/skills"),
    IdeType.CODEBUDDY: IdeConfig(IdeType.CODEBUDDY, ".codebuddy/skills"),
    IdeType.CURSOR: IdeConfig(IdeType.CURSOR, ".cursor/skills"),
    IdeType.QODER: IdeConfig(IdeType.QODER, ".qoder/skills"),
    IdeType.TRAE: IdeConfig(IdeType.TRAE, ".trae/skills"),
    IdeType.VSCODE: IdeConfig(IdeType.VSCODE, ".github/skills"),
    IdeType.WINDSURF: IdeConfig(IdeType.WINDSURF, ".windsurf/skills"),
}

_APP_NAME_MARKERS = (
    ("codebuddy", IdeType.CODEBUDDY),
    ("cursor", IdeType.CURSOR),
    ("qoder", IdeType.QODER),
    ("trae", IdeType.TRAE),
    ("antigravity", IdeType.ANTIGRAVITY),
    ("windsurf", IdeType.WINDSURF),
)

DEFAULT_IDE = IdeType.VSCODE


def resolve_ide_type(app_name: str) -> IdeType:
    """Map an application name to an IDE type by substring."""
    lower_app_name = app_name.lower()
    for marker, ide in _APP_NAME_MARKERS:
        if marker in lower_app_name:
            return ide
    return DEFAULT_IDE


def detect_ide(env: Optional[Mapping[str, str]] = None, app_name_hint: Optional[str] = None) -> IdeType:
    """
    Detect the current IDE from environment variables.

    Priority: AGENTSKILLS_IDE override, VSCODE_BRAND, VSCODE_ENV_APPNAME or
    PROG_IDE_NAME, the caller supplied hint, then the default.
    """
    if env is None:
        env = os.environ

    override = env.get("AGENTSKILLS_IDE", "").lower()
    if override:
        try:
            return IdeType(override)
        except ValueError:
            pass

    brand = env.get("VSCODE_BRAND", "")
    if brand:
        return resolve_ide_type(brand)

    app_name = env.get("VSCODE_ENV_APPNAME") or env.get("PROG_IDE_NAME") or ""
    if app_name:
        return resolve_ide_type(app_name)

    if app_name_hint:
        return resolve_ide_type(app_name_hint)

    return DEFAULT_IDE


def get_ide_config(ide: Union[IdeType, str]) -> IdeConfig:
    """Get configuration for an IDE type, or for an application name."""
    try:
        ide_type = IdeType(ide)
    except ValueError:
        ide_type = resolve_ide_type(str(ide))
    return IDE_CONFIGS[ide_type]


def get_project_skills_dir(workspace_root: Union[str, Path], ide: Union[IdeType, str]) -> Path:
    """Resolve ``<workspace_root>/<ide skills dir>``."""
    return Path(workspace_root) / get_ide_config(ide).skills_dir

"""
Highlight theme loader for chemdown code blocks.

Themes map a name to the Pygments style used for highlighting and the CSS
class placed on the code block container. All themes live in a single
themes/themes.yaml file shipped with the package:

    themes:
      monokai:
        pygments_style: monokai
        css_class: codeblock-theme-monokai
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional


THEMES_FILE: Path = Path(__file__).resolve().parent.parent / "themes" / "themes.yaml"


class ThemeError(Exception):
    """Raised when theme loading or lookup fails"""
    pass


def themes_load(themes_file: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load and parse the themes file.

    Args:
        themes_file: Path to a themes.yaml (default: the packaged one)

    Returns:
        Theme name → configuration mapping

    Raises:
        ThemeError: If the file is missing or malformed
    """
    path: Path = themes_file or THEMES_FILE
    if not path.exists():
        raise ThemeError(f"Themes file not found: {path}")

    try:
        with open(path, 'r') as f:
            config: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ThemeError(f"Failed to parse {path.name}: {e}")
    except OSError as e:
        raise ThemeError(f"Failed to load {path.name}: {e}")

    if not isinstance(config, dict) or not isinstance(config.get('themes'), dict):
        raise ThemeError(f"{path.name} has no 'themes' mapping")
    return config['themes']


class Theme:
    """
    Represents a code highlight theme.

    Example:
        >>> theme = Theme("monokai")
        >>> theme.pygmentsStyle_get()
        'monokai'
        >>> theme.cssClass_get()
        'codeblock-theme-monokai'
    """

    def __init__(self, theme_name: str, themes_file: Optional[Path] = None):
        """
        Load a theme by name.

        Args:
            theme_name: Name of the theme (e.g., "vs", "dracula")
            themes_file: Path to a themes.yaml (default: the packaged one)

        Raises:
            ThemeError: If the theme does not exist
        """
        self.name = theme_name
        themes: Dict[str, Any] = themes_load(themes_file)

        if theme_name not in themes:
            raise ThemeError(
                f"Theme '{theme_name}' not found. "
                f"Available: {', '.join(sorted(themes))}"
            )

        self.config: Dict[str, Any] = themes[theme_name] or {}

    def config_get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value of this theme.

        Supports nested keys with dot notation:
          theme.config_get('code.background', '#fff')

        Args:
            key: Configuration key (supports dot notation)
            default: Default value if key doesn't exist

        Returns:
            Configuration value or default
        """
        keys: list[str] = key.split('.')
        value: Any = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def pygmentsStyle_get(self) -> str:
        """Pygments style name for syntax highlighting (default: 'default')"""
        return self.config_get('pygments_style', 'default')

    def cssClass_get(self) -> str:
        """CSS class of the code block container"""
        return self.config_get('css_class', f"codeblock-theme-{self.name}")

    def __repr__(self) -> str:
        return f"Theme(name='{self.name}', style='{self.pygmentsStyle_get()}')"


def themes_listAvailable(themes_file: Optional[Path] = None) -> list[str]:
    """
    List all available theme names.

    Returns:
        Sorted theme names, empty if the themes file cannot be loaded
    """
    try:
        return sorted(themes_load(themes_file))
    except ThemeError:
        return []


def theme_resolve(theme_name: Optional[str]) -> Theme:
    """
    Load a theme, falling back to the configured default.

    Args:
        theme_name: Requested theme, None for the default

    Returns:
        The requested theme, or the default theme if it is unknown
    """
    from ..config import appsettings
    from .log import LOG

    name: str = theme_name or appsettings.default_theme
    try:
        return Theme(name)
    except ThemeError as e:
        LOG(f"{e}; falling back to '{appsettings.default_theme}'", level=1)
        return Theme(appsettings.default_theme)

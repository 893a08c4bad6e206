"""
Application settings and configuration

Uses pydantic-settings for type-safe configuration via environment variables.
All settings use CHEMDOWN_ prefix (e.g., CHEMDOWN_BATCH_WINDOW_MS=25).

Settings can also be loaded from a .env file in the project root.
"""

import re
from typing import Iterable, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application configuration via environment variables.

    Environment variables use CHEMDOWN_ prefix.

    Examples:
        CHEMDOWN_DEFAULT_THEME=monokai
        CHEMDOWN_CHEMISTRY_ENDPOINT=https://example.org/api/render-chemistry
        CHEMDOWN_CHEMISTRY_CACHE_SIZE=512
    """

    model_config = SettingsConfigDict(
        env_prefix="CHEMDOWN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Placeholder configuration
    placeholder_prefix: str = Field(
        default="{{",
        description="Opening delimiter of extraction placeholders (e.g. {{TABLE0}})",
    )

    placeholder_suffix: str = Field(
        default="}}",
        description="Closing delimiter of extraction placeholders",
    )

    # Rendering configuration
    default_theme: str = Field(
        default="vs",
        description="Highlight theme used for code blocks when none is requested",
    )

    sanitize_default: bool = Field(
        default=True,
        description="Sanitize literal markup unless the caller asks for trusted output",
    )

    debug_mode: bool = Field(
        default=False,
        description="Enable debug output during rendering",
    )

    # Chemistry batching configuration
    batch_window_ms: int = Field(
        default=50,
        description="Coalescing window for chemistry render requests, in milliseconds",
    )

    chemistry_endpoint: str = Field(
        default="http://localhost:3000/api/render-chemistry",
        description="Batched structure-rendering service (POST {contents: [...]})",
    )

    chemistry_cache_size: Optional[int] = Field(
        default=None,
        description="Maximum cached structure urls (None keeps every result)",
    )

    def placeHolder_make(self, kind: str, index: int) -> str:
        """
        Generate a placeholder token for an extracted component.

        Args:
            kind: Upper-case component kind (e.g. "TABLE", "CODEBLOCK")
            index: Per-kind counter value

        Returns:
            Placeholder string (e.g., "{{TABLE0}}")

        Example:
            >>> settings = AppSettings()
            >>> settings.placeHolder_make("TABLE", 0)
            '{{TABLE0}}'
        """
        return f"{self.placeholder_prefix}{kind}{index}{self.placeholder_suffix}"

    def placeHolder_parse(self, placeholder: str) -> tuple[str, int] | None:
        """
        Split a placeholder token into its kind and index.

        Returns:
            (kind, index) if valid placeholder, None otherwise

        Example:
            >>> settings = AppSettings()
            >>> settings.placeHolder_parse('{{CODEBLOCK3}}')
            ('CODEBLOCK', 3)
        """
        match = re.fullmatch(self.placeHolder_pattern(), placeholder)
        if not match:
            return None
        return match.group(1), int(match.group(2))

    def placeHolder_pattern(self, exclude: Iterable[str] = ()) -> str:
        """
        Regular expression matching any placeholder token.

        Group 1 captures the kind, group 2 the index. Kinds listed in
        ``exclude`` are not matched.
        """
        guard = ""
        excluded = sorted(exclude)
        if excluded:
            guard = "(?!(?:" + "|".join(excluded) + r")\d)"
        return (
            re.escape(self.placeholder_prefix)
            + guard
            + r"([A-Z]+)(\d+)"
            + re.escape(self.placeholder_suffix)
        )

    def placeHolder_neutralize(self, text: str) -> str:
        """
        Encode placeholder-shaped tokens already present in source text.

        The delimiters become HTML character references, so the token still
        displays as written but no pass can take it for a component.

        Example:
            >>> AppSettings().placeHolder_neutralize("see {{TABLE0}}")
            'see &#123;&#123;TABLE0&#125;&#125;'
        """
        prefix = charRefs_make(self.placeholder_prefix)
        suffix = charRefs_make(self.placeholder_suffix)
        return re.sub(
            self.placeHolder_pattern(),
            lambda m: f"{prefix}{m.group(1)}{m.group(2)}{suffix}",
            text,
        )

    def placeHolder_literal(self, text: str) -> str:
        """
        Undo placeHolder_neutralize() for text that is escaped on output
        (code, math), where character references would show verbatim.
        """
        pattern = (
            re.escape(charRefs_make(self.placeholder_prefix))
            + r"([A-Z]+\d+)"
            + re.escape(charRefs_make(self.placeholder_suffix))
        )
        return re.sub(
            pattern,
            lambda m: f"{self.placeholder_prefix}{m.group(1)}{self.placeholder_suffix}",
            text,
        )


def charRefs_make(text: str) -> str:
    """Spell every character of ``text`` as a numeric character reference"""
    return "".join(f"&#{ord(char)};" for char in text)


# Singleton instance - import this in your code
appsettings = AppSettings()

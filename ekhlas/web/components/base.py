"""
Base Component class for Ekhlas UI components.

HTML is generated in plain Python: components are small classes with a
`render()` method, and every dynamic value goes through `escape()`.
"""

from typing import Any, Optional
import html


def _attr_name(key: str) -> str:
    # class_ -> class, aria_invalid -> aria-invalid
    return key[:-1] if key.endswith("_") else key.replace("_", "-")


class Component:
    """Base class for all UI components."""

    def render(self) -> str:
        raise NotImplementedError(f"{type(self).__name__} must implement render()")

    @staticmethod
    def escape(text: Optional[Any]) -> str:
        """Escape HTML entities; None renders as empty string."""
        if text is None:
            return ""
        return html.escape(str(text))

    @staticmethod
    def classes(*names: str, **flags: bool) -> str:
        """Join CSS classes; keyword flags are added only when true.

        >>> Component.classes("sidebar-link", active=True, muted=False)
        'sidebar-link active'
        """
        return " ".join([*names, *(name for name, on in flags.items() if on)])

    @staticmethod
    def attributes(**attrs: Any) -> str:
        """Render keyword arguments as HTML attributes.

        True gives a bare boolean attribute, False/None drop the attribute,
        anything else is escaped into `name="value"`.
        """
        parts = []
        for key, value in attrs.items():
            if value is None or value is False:
                continue
            name = _attr_name(key)
            parts.append(name if value is True else f'{name}="{html.escape(str(value))}"')
        return " ".join(parts)

"""
Placeholder interpolation for template files.

Template files use Jinja2 syntax (``{{ name }}``). The engine runs in one
of two modes:

- strict: a placeholder with no value raises UnboundVariableError
- lenient: a placeholder with no value is written back as ``{{ name }}``,
  filters included (``{{ name | upper }}``)

Only .tt files reach the engine, and never binary ones; see
``file_filter.is_binary``.
"""

import functools
import logging
import re
from typing import Any, Callable, Mapping, Optional

from jinja2 import DebugUndefined, Environment, StrictUndefined, TemplateSyntaxError
from jinja2.exceptions import UndefinedError

from .errors import TemplateRenderError, UnboundVariableError

logger = logging.getLogger(__name__)

TEMPLATE_MARKERS = ('{{', '{%', '{#')

_UNDEFINED_NAME = re.compile(r"'([^']+)' is undefined")


class PassthroughUndefined(DebugUndefined):
    """Undefined value that renders as its own placeholder.

    Attribute and item access on an unknown name keep passing through,
    so ``{{ secrets.TOKEN }}`` survives rendering unchanged.
    """

    __slots__ = ()

    def _child(self, name: str) -> "PassthroughUndefined":
        base = self._undefined_name
        return type(self)(name=f"{base}.{name}" if base else name)

    def __getattr__(self, name: str) -> Any:
        if name[:2] == '__':
            raise AttributeError(name)
        return self._child(name)

    def __getitem__(self, key: Any) -> Any:
        return self._child(str(key))

    def _filtered(self, filter_name: str, args: tuple, kwargs: dict) -> "PassthroughUndefined":
        arguments = [repr(arg) for arg in args] + [f"{key}={value!r}" for key, value in kwargs.items()]
        call = f"({', '.join(arguments)})" if arguments else ""
        return type(self)(name=f"{self._undefined_name} | {filter_name}{call}")


# Filters that exist to handle missing values keep their normal behaviour
UNDEFINED_AWARE_FILTERS = {'default', 'd'}


def _passthrough_filter(name: str, func: Callable) -> Callable:
    """Wrap a filter so it leaves an unknown placeholder as written."""
    # Filters taking the environment or context get it as first argument
    offset = 1 if getattr(func, 'jinja_pass_arg', None) is not None else 0

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if len(args) > offset and isinstance(args[offset], PassthroughUndefined):
            return args[offset]._filtered(name, args[offset + 1:], kwargs)
        return func(*args, **kwargs)

    return wrapper


def needs_rendering(text: str) -> bool:
    """Check whether text contains any template markers."""
    return any(marker in text for marker in TEMPLATE_MARKERS)


class Interpolator:
    """Substitutes context values into template text."""

    def __init__(self, strict: bool = True):
        self.strict = strict
        self._env = Environment(
            undefined=StrictUndefined if strict else PassthroughUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        if not strict:
            for name, func in list(self._env.filters.items()):
                if name not in UNDEFINED_AWARE_FILTERS:
                    self._env.filters[name] = _passthrough_filter(name, func)

    def render(self, text: str, context: Mapping[str, Any], source: Optional[str] = None) -> str:
        """Render template text with the given context.

        Args:
            text: Template file contents
            context: Variable name to value mapping
            source: Name of the file being rendered, used in error messages

        Returns:
            The interpolated text

        Raises:
            UnboundVariableError: In strict mode, for a placeholder without a value
            TemplateRenderError: If the text is not valid template syntax
        """
        if not needs_rendering(text):
            return text

        try:
            template = self._env.from_string(text)
            return template.render(**context)
        except UndefinedError as e:
            match = _UNDEFINED_NAME.search(str(e))
            variable = match.group(1) if match else str(e)
            logger.debug("Unbound variable %r in %s", variable, source or "<text>")
            raise UnboundVariableError(variable, source) from e
        except TemplateSyntaxError as e:
            where = f"{source}, line {e.lineno}" if source else f"line {e.lineno}"
            raise TemplateRenderError(f"Invalid template syntax ({where}): {e.message}") from e

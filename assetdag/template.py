# assetdag/template.py
"""
Directive grammar, parser and renderer.

Directives look like `{{: kind:target :}}`. The opening token is `{{: `
(note the trailing space) and the closing token is ` :}}`, so `{{:foo:}}`
is not a directive. Three kinds exist:

    {{: include:colors.css :}}   splice the final content of colors.css
    {{: path:bundle.js :}}       splice the public (possibly hashed) path
    {{: var:accent :}}           splice a variable from the context

A directive must close on the line where it opens and may be at most
MAX_DIRECTIVE_LEN bytes long. Matching is leftmost-first and
non-overlapping, and rendered output is never scanned again.
"""

from typing import Callable, List, Tuple

from .asset import Directive, DirectiveKind
from .errors import TemplateSyntaxError

OPEN = b"{{: "
CLOSE = b" :}}"

# Longest accepted directive, open and close tokens included.
MAX_DIRECTIVE_LEN = 256

_KINDS = {kind.value: kind for kind in DirectiveKind}


def _parse_body(body: bytes, path: str, offset: int) -> Tuple[DirectiveKind, str]:
    try:
        text = body.decode("utf-8").strip()
    except UnicodeDecodeError:
        raise TemplateSyntaxError(path, offset, "directive is not valid UTF-8") from None

    if not text:
        raise TemplateSyntaxError(path, offset, "empty directive")
    if ":" not in text:
        raise TemplateSyntaxError(path, offset, f"expected 'kind:target', got '{text}'")

    kind_str, target = text.split(":", 1)
    kind = _KINDS.get(kind_str.strip())
    if kind is None:
        known = ", ".join(sorted(_KINDS))
        raise TemplateSyntaxError(
            path, offset, f"unknown directive kind '{kind_str.strip()}' (expected one of: {known})"
        )

    target = target.strip()
    if not target:
        raise TemplateSyntaxError(path, offset, f"'{kind.value}' directive without target")

    return kind, target


def parse_directives(raw: bytes, path: str) -> List[Directive]:
    """
    Find all directives in raw bytes.

    Args:
        raw: The asset's raw content
        path: Logical path, used for error messages

    Returns:
        Directives in ascending offset order

    Raises:
        TemplateSyntaxError: On an unterminated, oversized or malformed directive
    """
    directives = []
    idx = 0
    while True:
        start = raw.find(OPEN, idx)
        if start < 0:
            break

        line_end = raw.find(b"\n", start)
        if line_end < 0:
            line_end = len(raw)
        limit = min(line_end, start + MAX_DIRECTIVE_LEN)

        # The close token may share the space that ends the open token.
        close = raw.find(CLOSE, start + len(OPEN) - 1, limit)
        if close < 0:
            if raw.find(CLOSE, start + len(OPEN) - 1, line_end) >= 0:
                reason = f"directive longer than {MAX_DIRECTIVE_LEN} bytes"
            else:
                reason = "unterminated directive"
            raise TemplateSyntaxError(path, start, reason)

        end = close + len(CLOSE)
        body = raw[start + len(OPEN):close] if close >= start + len(OPEN) else b""
        kind, target = _parse_body(body, path, start)
        directives.append(Directive(kind=kind, target=target, start=start, end=end))
        idx = end

    return directives


def render(raw: bytes, directives: List[Directive],
           replace: Callable[[Directive], bytes]) -> bytes:
    """
    Replace each directive span with the bytes `replace` returns for it.

    Spans are replaced in one left-to-right pass; replacement bytes are
    copied verbatim and never re-interpreted.
    """
    if not directives:
        return raw

    parts = []
    last = 0
    for directive in directives:
        if directive.start < last:
            raise ValueError(f"Overlapping directive at byte {directive.start}")
        parts.append(raw[last:directive.start])
        parts.append(replace(directive))
        last = directive.end
    parts.append(raw[last:])
    return b"".join(parts)

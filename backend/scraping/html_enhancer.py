"""
Readability pass for captured response bodies.

Bodies are rewritten into an indented, line-length-bounded form so that a
text-consuming agent can read minified markup, inline scripts and inline
styles. Output is never required to be valid HTML. The pass is total: any
internal failure returns the body unchanged.
"""

import json
import logging
import re
from typing import Any, Callable, Iterator, List, Optional, Set, Tuple

from . import config
from .errors import NormalizationError

logger = logging.getLogger(__name__)

VOID_TAGS = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input", "keygen",
        "link", "meta", "param", "source", "track", "wbr",
    }
)
RAW_TAGS = frozenset({"script", "style"})
LANDMARK_TAGS = ("head", "body", "nav", "header", "main", "footer", "aside")

ENTITY_MAP = {
    "&amp;": "&",
    "&quot;": '"',
    "&#34;": '"',
    "&#39;": "'",
    "&#x27;": "'",
    "&apos;": "'",
    "&nbsp;": " ",
    "&#160;": " ",
    "&copy;": "©",
    "&reg;": "®",
    "&trade;": "™",
    "&hellip;": "…",
    "&ndash;": "–",
    "&mdash;": "—",
    "&euro;": "€",
}

# tags never span another "<"
_ATTRS = r"(?:[^<>\"']|\"[^\"<]*\"|'[^'<]*')*?"
_NAME = r"([a-zA-Z][\w:.-]*)(?![\w:.-])"
_TAG_RE = re.compile(r"<(/?)" + _NAME + r"(" + _ATTRS + r")(/?)>")
_OPEN_TAG_RE = re.compile(r"<" + _NAME + r"(\s" + _ATTRS + r")(/?)>")
_META_TAG_RE = re.compile(r"<meta\b(" + _ATTRS + r")(/?)>", re.IGNORECASE)
_ATTR_RE = re.compile(r"""([^\s=/>"']+)(?:\s*=\s*("[^"]*"|'[^']*'|[^\s>"']+))?""")
_PENDING_RE = re.compile(r"<([a-zA-Z][\w:.-]*)(?:\s(?:[^<>\"']|\"[^\"<]*\"|'[^'<]*')*(?:[\"'][^\"'<]*)?)?$")
_RAW_OPEN_RE = re.compile(r"<(script|style)\b[^<>]*>", re.IGNORECASE)
_DATA_ATTR_RE = re.compile(r"""(\sdata-[\w.:-]+)\s*=\s*(?:"([^"<]*)"|'([^'<]*)')""")
_DATA_URI_RE = re.compile(r"data:([\w.+/-]+)?((?:;[\w-]+=[\w.-]+)*);base64,([A-Za-z0-9+/=]+)")
_TEXT_NODE_RE = re.compile(r">([^<>]+)<")
_ENTITY_RE = re.compile("|".join(re.escape(entity) for entity in ENTITY_MAP))
_LANDMARK_RE = re.compile(r"<(" + "|".join(LANDMARK_TAGS) + r")(?=[\s>/])", re.IGNORECASE)
_HTML_DOCUMENT_RE = re.compile(r"<(?:html|head|body)\b", re.IGNORECASE)
_BLANK_RUN_RE = re.compile(r"\n(?:[ \t]*\n){3,}")


def enhance_html_readability(body: Any) -> Any:
    """
    Return a reformatted copy of ``body`` suitable for an agent prompt.

    Structured bodies (already-parsed JSON) and None are returned as-is.
    Text longer than ``NORMALIZE_MAX_CHARS`` is returned unchanged.
    """
    if not isinstance(body, str):
        return body
    if len(body) > config.NORMALIZE_MAX_CHARS:
        return body
    try:
        return _enhance(body)
    except NormalizationError as exc:
        logger.debug("Normalization skipped: %s", exc)
    except Exception:
        logger.debug("Normalization failed", exc_info=True)
    return body


def _enhance(text: str) -> str:
    html = text
    for name, step in _STEPS:
        try:
            html = step(html)
        except (re.error, ValueError, TypeError, IndexError, RecursionError) as exc:
            raise NormalizationError(f"{name} step failed: {exc}") from exc
    return html


def _raw_blocks(html: str) -> Iterator[Tuple[int, int, int, int, str]]:
    """
    Yield ``(start, body_start, body_end, end, tag)`` for each closed script or style block.

    One forward scan: once a tag has no closing tag left, later openers of it are skipped.
    """
    unclosed: Set[str] = set()
    pos = 0
    while True:
        opener = _RAW_OPEN_RE.search(html, pos)
        if opener is None:
            return
        tag = opener.group(1).lower()
        pos = opener.end()
        if tag in unclosed:
            continue
        closer = re.compile(rf"</{tag}\s*>", re.IGNORECASE).search(html, pos)
        if closer is None:
            unclosed.add(tag)
            continue
        yield opener.start(), opener.end(), closer.start(), closer.end(), tag
        pos = closer.end()


def _map_markup(html: str, fn: Callable[[str], str]) -> str:
    """Apply ``fn`` to markup only, leaving script and style bodies untouched."""
    parts: List[str] = []
    pos = 0
    for _start, body_start, body_end, _end, _tag in _raw_blocks(html):
        parts.append(fn(html[pos:body_start]))
        parts.append(html[body_start:body_end])
        pos = body_end
    parts.append(fn(html[pos:]))
    return "".join(parts)


# ----------------------------------------------------------------------
# Markup steps
# ----------------------------------------------------------------------
def _unminify_tags(markup: str) -> str:
    return re.sub(r">[ \t]*<", ">\n<", markup)


def _split_attributes(attrs: str) -> List[str]:
    return [match.group(0) for match in _ATTR_RE.finditer(attrs) if match.group(0).strip()]


def _stack_attributes(name: str, attrs: str, self_closing: str) -> str:
    pieces = _split_attributes(attrs)
    if not pieces:
        return f"<{name}{attrs}{self_closing}>"
    closing = " />" if self_closing else ">"
    return f"<{name}\n" + "\n".join(pieces) + closing


def _wrap_long_attributes(markup: str) -> str:
    def _wrap(match: "re.Match[str]") -> str:
        name, attrs, self_closing = match.group(1), match.group(2), match.group(3)
        if len(attrs.strip()) <= config.ATTRIBUTE_WRAP_LENGTH:
            return match.group(0)
        return _stack_attributes(name, attrs, self_closing)

    return _OPEN_TAG_RE.sub(_wrap, markup)


def _wrap_meta_tags(markup: str) -> str:
    def _wrap(match: "re.Match[str]") -> str:
        attrs, self_closing = match.group(1), match.group(2)
        if "\n" in attrs or len(_split_attributes(attrs)) <= 2:
            return match.group(0)
        return _stack_attributes("meta", attrs, self_closing)

    return _META_TAG_RE.sub(_wrap, markup)


def _pretty_print_data_attributes(markup: str) -> str:
    def _pretty(match: "re.Match[str]") -> str:
        name = match.group(1)
        raw = match.group(2) if match.group(2) is not None else match.group(3)
        candidate = raw.replace("&quot;", '"').replace("&#34;", '"').strip()
        if not candidate.startswith(("{", "[")):
            return match.group(0)
        try:
            parsed = json.loads(candidate)
        except ValueError:
            return match.group(0)
        pretty = json.dumps(parsed, indent=2, ensure_ascii=False)
        if "'" not in pretty:
            return f"{name}='{pretty}'"
        return f'{name}="{pretty.replace(chr(34), "&quot;")}"'

    return _DATA_ATTR_RE.sub(_pretty, markup)


def _decode_text_entities(markup: str) -> str:
    def _decode(match: "re.Match[str]") -> str:
        text = _ENTITY_RE.sub(lambda entity: ENTITY_MAP[entity.group(0)], match.group(1))
        return f">{text}<"

    return _TEXT_NODE_RE.sub(_decode, markup)


def _insert_landmark_comments(markup: str) -> str:
    def _comment(match: "re.Match[str]") -> str:
        tag = match.group(1).lower()
        return f"<!-- ===== {tag.upper()} ===== -->\n{match.group(0)}"

    return _LANDMARK_RE.sub(_comment, markup)


def _truncate_data_uri(match: "re.Match[str]") -> str:
    if len(match.group(0)) <= config.DATA_URI_MAX_CHARS:
        return match.group(0)
    mime = match.group(1) or ""
    return f"data:{mime}{match.group(2)};base64,[truncated {len(match.group(3))} chars]"


# ----------------------------------------------------------------------
# Script and style bodies
# ----------------------------------------------------------------------
def _reflow_raw_blocks(html: str) -> str:
    parts: List[str] = []
    pos = 0
    for start, body_start, body_end, end, tag in _raw_blocks(html):
        parts.append(html[pos:start])
        parts.append(_reflow_raw_block(html[start:body_start], tag, html[body_start:body_end], html[body_end:end]))
        pos = end
    parts.append(html[pos:])
    return "".join(parts)


def _reflow_raw_block(open_tag: str, tag: str, content: str, close_tag: str) -> str:
    stripped = content.strip()
    if not stripped:
        return open_tag + content + close_tag
    if tag == "script":
        try:
            parsed = json.loads(stripped)
        except ValueError:
            pass
        else:
            pretty = json.dumps(parsed, indent=2, ensure_ascii=False)
            return f"{open_tag}\n{pretty}\n{close_tag}"
    if "\n" in stripped or len(stripped) <= config.MAX_LINE_LENGTH:
        return open_tag + content + close_tag
    return f"{open_tag}\n{_break_statements(stripped)}\n{close_tag}"


def _break_statements(code: str, breakers: str = ";{}") -> str:
    """Insert newlines after statement and block boundaries outside strings and parentheses."""
    out: List[str] = []
    quote: Optional[str] = None
    escaped = False
    parens = 0
    for ch in code:
        out.append(ch)
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in "\"'`":
            quote = ch
        elif ch == "(":
            parens += 1
        elif ch == ")":
            parens = max(parens - 1, 0)
        elif ch in breakers and parens == 0:
            out.append("\n")
    lines = [line.strip() for line in "".join(out).split("\n")]
    return "\n".join(line for line in lines if line)


# ----------------------------------------------------------------------
# Indentation
# ----------------------------------------------------------------------
def _scan_quotes(text: str, quote: Optional[str]) -> Tuple[int, Optional[str]]:
    """Return the index of the first unquoted ``>`` (or -1) and the trailing quote state."""
    for index, ch in enumerate(text):
        if quote:
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == ">":
            return index, None
    return -1, quote


def _scan_tags(text: str, depth: int) -> Tuple[int, Optional[str], Optional[str], Optional[str]]:
    """
    Walk the tags of one line fragment.

    Returns the new depth, the name of a tag whose attributes continue on the
    next line, the quote state of that tag, and the raw-text tag left open.
    """
    pos = 0
    while True:
        match = _TAG_RE.search(text, pos)
        if match is None:
            break
        closing, name, _attrs, self_closing = match.groups()
        name = name.lower()
        pos = match.end()
        if closing:
            depth = max(depth - 1, 0)
            continue
        if self_closing or name in VOID_TAGS:
            continue
        depth += 1
        if name in RAW_TAGS:
            close = re.compile(rf"</{name}\s*>", re.IGNORECASE).search(text, pos)
            if close is None:
                return depth, None, None, name
            depth = max(depth - 1, 0)
            pos = close.end()
    pending = _PENDING_RE.search(text, pos)
    if pending is None:
        return depth, None, None, None
    _, quote = _scan_quotes(pending.group(0), None)
    return depth, pending.group(1).lower(), quote, None


def _reindent(html: str) -> str:
    out: List[str] = []
    depth = 0
    pending: Optional[str] = None
    pending_quote: Optional[str] = None
    raw: Optional[str] = None

    for line in html.split("\n"):
        stripped = line.strip()
        if not stripped:
            out.append("")
            continue

        if raw is not None:
            close = re.compile(rf"</{raw}\s*>", re.IGNORECASE).search(stripped)
            if close is None:
                out.append(config.INDENT * depth + line.rstrip())
                continue
            raw = None
            if close.start() > 0:
                out.append(config.INDENT * depth + line.rstrip())
                depth = max(depth - 1, 0)
                depth, pending, pending_quote, raw = _scan_tags(stripped[close.end():], depth)
                continue

        if pending is not None:
            out.append(config.INDENT * (depth + 1) + stripped)
            end, pending_quote = _scan_quotes(stripped, pending_quote)
            if end < 0:
                continue
            name, pending = pending, None
            if not stripped[:end].endswith("/") and name not in VOID_TAGS:
                depth += 1
                if name in RAW_TAGS:
                    rest = stripped[end + 1:]
                    close = re.compile(rf"</{name}\s*>", re.IGNORECASE).search(rest)
                    if close is None:
                        raw = name
                        continue
                    depth = max(depth - 1, 0)
                    depth, pending, pending_quote, raw = _scan_tags(rest[close.end():], depth)
                    continue
            depth, pending, pending_quote, raw = _scan_tags(stripped[end + 1:], depth)
            continue

        level = max(depth - 1, 0) if stripped.startswith("</") else depth
        out.append(config.INDENT * level + stripped)
        depth, pending, pending_quote, raw = _scan_tags(stripped, depth)

    return "\n".join(out)


def _ensure_document_head(html: str) -> str:
    if not _HTML_DOCUMENT_RE.search(html):
        return html
    if not re.search(r"<!doctype", html, re.IGNORECASE):
        html = "<!DOCTYPE html>\n" + html
    head = re.search(r"^([ \t]*)(<head\b[^<>]*>)", html, re.IGNORECASE | re.MULTILINE)
    if head and not re.search(r"<meta\b[^<>]*charset", html, re.IGNORECASE):
        indent = head.group(1) + config.INDENT
        html = f'{html[:head.end()]}\n{indent}<meta charset="utf-8">{html[head.end():]}'
    return html


# ----------------------------------------------------------------------
# Long lines
# ----------------------------------------------------------------------
def _find_break(text: str, limit: int, start: int) -> Optional[int]:
    """Rightmost split index in ``text[start:limit]``; inside quotes only ``;`` qualifies."""
    best: Optional[int] = None
    quote: Optional[str] = None
    escaped = False
    window = text[:limit]
    for index, ch in enumerate(window):
        in_quote = quote is not None
        if quote:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
        elif ch in "\"'`":
            quote = ch
        if index < start:
            continue
        if in_quote:
            if ch == ";":
                best = index + 1
            continue
        if ch in ",;([{)]}":
            best = index + 1
        elif ch.isspace():
            best = index
        elif window[index:index + 2] in ("&&", "||") and index + 2 <= limit:
            best = index + 2
    return best


def _split_long_line(line: str, limit: int) -> List[str]:
    if len(line) <= limit:
        return [line]
    indent = line[: len(line) - len(line.lstrip())]
    continuation = indent + config.INDENT
    pieces: List[str] = []
    current = line
    while len(current) > limit:
        lead = len(current) - len(current.lstrip())
        split_at = _find_break(current, limit, max(limit // 3, lead + 1))
        if split_at is None:
            break
        head, tail = current[:split_at].rstrip(), current[split_at:].strip()
        if not head.strip() or not tail:
            break
        following = continuation + tail
        if len(following) >= len(current):
            break
        pieces.append(head)
        current = following
    pieces.append(current)
    return pieces


def _split_long_lines(html: str) -> str:
    return "\n".join(
        piece
        for line in html.split("\n")
        for piece in _split_long_line(line, config.MAX_LINE_LENGTH)
    )


_STEPS: Tuple[Tuple[str, Callable[[str], str]], ...] = (
    ("unminify", lambda html: _map_markup(html, _unminify_tags)),
    ("raw blocks", _reflow_raw_blocks),
    ("long attributes", lambda html: _map_markup(html, _wrap_long_attributes)),
    ("data attributes", lambda html: _map_markup(html, _pretty_print_data_attributes)),
    ("entities", lambda html: _map_markup(html, _decode_text_entities)),
    ("landmarks", lambda html: _map_markup(html, _insert_landmark_comments)),
    ("data uris", lambda html: _DATA_URI_RE.sub(_truncate_data_uri, html)),
    ("meta tags", lambda html: _map_markup(html, _wrap_meta_tags)),
    ("indentation", _reindent),
    ("document head", _ensure_document_head),
    ("blank lines", lambda html: _BLANK_RUN_RE.sub("\n\n", html)),
    ("long lines", _split_long_lines),
)


__all__ = ["enhance_html_readability", "VOID_TAGS", "LANDMARK_TAGS", "ENTITY_MAP"]

"""
Pattern-based knowledge extraction from raw file text.

A single general-purpose parser cannot cover every file type found in an
arbitrary repository, so extraction is a set of small, independent matcher
functions.  Each one has the same shape::

    matcher(content: str, file_path: str) -> <category result>

and :func:`extract` runs every matcher that applies to the file, isolating
failures: a matcher that raises leaves its own category empty, records its
name in ``ExtractedKnowledge.errors`` and does not affect the others.

Supported well: JavaScript / TypeScript (incl. JSX, Vue, Svelte), Python,
Markdown, JSON / YAML / TOML / INI.  Everything else still gets comment
extraction.
"""

from __future__ import annotations

import configparser
import json
import logging
import os
import re
import tomllib
from dataclasses import dataclass, field
from typing import Callable, Optional

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# File classification
# ---------------------------------------------------------------------------

JS_EXTENSIONS: frozenset[str] = frozenset({
    ".js", ".mjs", ".cjs", ".jsx", ".ts", ".mts", ".cts", ".tsx",
    ".vue", ".svelte",
})
MARKUP_EXTENSIONS: frozenset[str] = frozenset({
    ".jsx", ".tsx", ".html", ".htm", ".vue", ".svelte",
})
PYTHON_EXTENSIONS: frozenset[str] = frozenset({".py", ".pyi"})
HASH_COMMENT_EXTENSIONS: frozenset[str] = frozenset({
    ".py", ".pyi", ".rb", ".sh", ".bash", ".yaml", ".yml", ".toml",
    ".ini", ".cfg", ".conf", ".r", ".pl",
})
SLASH_COMMENT_EXTENSIONS: frozenset[str] = JS_EXTENSIONS | frozenset({
    ".java", ".kt", ".go", ".rs", ".c", ".h", ".cc", ".cpp", ".hpp",
    ".cs", ".swift", ".php", ".scala", ".dart", ".css", ".scss", ".less",
})
MARKDOWN_EXTENSIONS: frozenset[str] = frozenset({".md", ".mdx", ".markdown"})
CONFIG_EXTENSIONS: frozenset[str] = frozenset({
    ".json", ".yaml", ".yml", ".toml", ".ini", ".cfg", ".conf",
})


def file_extension(file_path: str) -> str:
    return os.path.splitext(file_path)[1].lower()


# ---------------------------------------------------------------------------
# Result data classes
# ---------------------------------------------------------------------------

@dataclass
class ExtractedFunction:
    """A function or method signature."""
    name: str
    params: str = ""
    is_async: bool = False
    parent_class: Optional[str] = None
    line: int = 0


@dataclass
class ExtractedClass:
    name: str
    superclass: Optional[str] = None
    methods: list[str] = field(default_factory=list)
    line: int = 0


@dataclass
class ExtractedImport:
    source: str
    names: list[str] = field(default_factory=list)


@dataclass
class ExtractedRoute:
    method: str
    path: str
    handler: str = ""


@dataclass
class ExtractedPage:
    """Markdown document summary."""
    title: str = ""
    description: str = ""
    headings: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)


@dataclass
class ExtractedConfig:
    """Top-level view of a configuration document."""
    format: str
    keys: list[str] = field(default_factory=list)
    name: str = ""
    description: str = ""
    scripts: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)


@dataclass
class ExtractedKnowledge:
    """Everything the matchers found in one file."""
    file_path: str
    file_type: str
    doc_comments: list[str] = field(default_factory=list)
    line_comments: list[str] = field(default_factory=list)
    functions: list[ExtractedFunction] = field(default_factory=list)
    classes: list[ExtractedClass] = field(default_factory=list)
    exports: dict[str, str] = field(default_factory=dict)
    imports: list[ExtractedImport] = field(default_factory=list)
    api_routes: list[ExtractedRoute] = field(default_factory=list)
    text_blocks: list[tuple[str, str]] = field(default_factory=list)
    structured_data: dict[str, str] = field(default_factory=dict)
    page: Optional[ExtractedPage] = None
    config: Optional[ExtractedConfig] = None
    errors: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not any((
            self.doc_comments, self.line_comments, self.functions,
            self.classes, self.exports, self.api_routes, self.text_blocks,
            self.structured_data, self.page, self.config,
        ))


# ---------------------------------------------------------------------------
# Low-level scanning helpers
# ---------------------------------------------------------------------------

_MAX_BALANCED_SCAN = 60_000
_PAIRS = {"(": ")", "{": "}", "[": "]"}


def find_matching(text: str, open_idx: int) -> Optional[int]:
    """
    Return the index of the bracket closing the one at *open_idx*.

    Quoted strings (``'``, ``"``, `````) are skipped so brackets inside them
    do not count.  Returns None when unbalanced or when the scan exceeds a
    fixed window.
    """
    if open_idx >= len(text) or text[open_idx] not in _PAIRS:
        return None
    opener = text[open_idx]
    closer = _PAIRS[opener]
    depth = 0
    quote: Optional[str] = None
    end = min(len(text), open_idx + _MAX_BALANCED_SCAN)
    i = open_idx
    while i < end:
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
            elif ch == "\n" and quote != "`":
                quote = None
        elif ch in ("'", '"', "`"):
            quote = ch
        elif ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def blank_nested(body: str) -> str:
    """Replace everything nested inside braces with spaces (newlines kept)."""
    out: list[str] = []
    depth = 0
    for ch in body:
        if ch == "{":
            depth += 1
            out.append(ch if depth == 1 else " ")
        elif ch == "}":
            out.append(ch if depth == 1 else " ")
            depth = max(0, depth - 1)
        elif depth > 0 and ch != "\n":
            out.append(" ")
        else:
            out.append(ch)
    return "".join(out)


def _line_of(text: str, idx: int) -> int:
    return text.count("\n", 0, idx) + 1


def _squash(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

MIN_COMMENT_LENGTH = 10

_COMMENT_EXCLUSION_MARKERS = (
    "@private", "eslint-disable", "eslint-enable", "prettier-ignore",
    "@ts-ignore", "@ts-expect-error", "@ts-nocheck", "istanbul ignore",
    "noqa", "type: ignore", "pylint:", "pragma: no cover", "sourcemappingurl",
    "copyright (c)", "spdx-license-identifier", "@license",
)

_DOC_BLOCK_RE = re.compile(r"/\*\*(?!/)([\s\S]*?)\*/")
_PY_DOCSTRING_RE = re.compile(r'("""|\'\'\')([\s\S]*?)\1')
_SLASH_LINE_RE = re.compile(r"(?:^|[\s;{}()])//(?!/)\s?(.*)$", re.MULTILINE)
_HASH_LINE_RE = re.compile(r"^\s*#(?![!#])\s?(.*)$", re.MULTILINE)


def _excluded(comment: str) -> bool:
    lowered = comment.lower()
    return any(marker in lowered for marker in _COMMENT_EXCLUSION_MARKERS)


def clean_doc_block(raw: str) -> str:
    """Strip comment delimiters and leading ``*`` gutters from a block comment."""
    lines = []
    for line in raw.splitlines():
        line = line.strip()
        if line.startswith("/**"):
            line = line[3:]
        elif line.startswith("/*"):
            line = line[2:]
        if line.endswith("*/"):
            line = line[:-2]
        line = line.lstrip("*").strip()
        if line:
            lines.append(line)
    return "\n".join(lines)


def extract_doc_comments(content: str, file_path: str) -> list[str]:
    """Doc-comment blocks (``/** */`` and Python docstrings)."""
    ext = file_extension(file_path)
    comments: list[str] = []
    if ext in SLASH_COMMENT_EXTENSIONS:
        for match in _DOC_BLOCK_RE.finditer(content):
            text = clean_doc_block(match.group(1))
            if len(text) >= MIN_COMMENT_LENGTH and not _excluded(text):
                comments.append(text)
    if ext in PYTHON_EXTENSIONS:
        for match in _PY_DOCSTRING_RE.finditer(content):
            text = match.group(2).strip()
            if len(text) >= MIN_COMMENT_LENGTH and not _excluded(text):
                comments.append(text)
    return comments


def extract_line_comments(content: str, file_path: str) -> list[str]:
    """Single-line ``//`` or ``#`` comments, depending on the file type."""
    ext = file_extension(file_path)
    if ext in SLASH_COMMENT_EXTENSIONS:
        pattern = _SLASH_LINE_RE
    elif ext in HASH_COMMENT_EXTENSIONS:
        pattern = _HASH_LINE_RE
    else:
        return []
    comments: list[str] = []
    for match in pattern.finditer(content):
        text = match.group(1).strip()
        if len(text) < MIN_COMMENT_LENGTH or _excluded(text):
            continue
        if not re.search(r"[A-Za-z]{3}", text) or re.fullmatch(r"[-=*#_ ]+", text):
            continue
        comments.append(text)
    return comments


# ---------------------------------------------------------------------------
# Functions & classes: JavaScript / TypeScript
# ---------------------------------------------------------------------------

_IDENT = r"[A-Za-z_$][\w$]*"
_JS_KEYWORDS = frozenset({
    "if", "for", "while", "switch", "catch", "function", "return", "with",
    "constructor", "super", "new", "typeof", "else", "do", "try", "await",
})

_JS_FUNC_DECL_RE = re.compile(
    rf"\b(async\s+)?function\s*\*?\s*({_IDENT})\s*(?:<[^>(]*>)?\s*\(")
_JS_FUNC_EXPR_RE = re.compile(
    rf"(?:\b(?:const|let|var)\s+)?({_IDENT}(?:\.{_IDENT})*)\s*(?::[^=\n]{{1,80}})?="
    rf"\s*(async\s+)?function\b\s*\*?\s*(?:{_IDENT})?\s*\(")
_JS_ARROW_RE = re.compile(
    rf"\b(?:const|let|var)\s+({_IDENT})\s*(?::[^=\n]{{1,80}})?=\s*(async\s+)?"
    rf"(?:<[^>(]*>\s*)?(\(|{_IDENT}\s*=>)")
_JS_PROPERTY_FUNC_RE = re.compile(
    rf"^\s*({_IDENT})\s*:\s*(async\s+)?(?:function\b\s*\*?\s*(?:{_IDENT})?\s*)?\(",
    re.MULTILINE)
_JS_METHOD_RE = re.compile(
    rf"^[ \t]*(?:(?:public|private|protected|static|readonly|override|abstract)\s+)*"
    rf"(async\s+)?(?:get\s+|set\s+)?\*?\s*(#?{_IDENT})\s*(?:<[^>(]*>)?\s*\(",
    re.MULTILINE)
_JS_CLASS_RE = re.compile(
    rf"\bclass\s+({_IDENT})(?:\s*<[^>{{]*>)?(?:\s+extends\s+({_IDENT}(?:\.{_IDENT})*))?"
    rf"[^{{;]*\{{")


def _params_after(content: str, paren_idx: int) -> tuple[Optional[str], int]:
    close = find_matching(content, paren_idx)
    if close is None:
        return None, paren_idx
    return _squash(content[paren_idx + 1:close]), close


def _followed_by_arrow(content: str, idx: int) -> bool:
    return re.match(r"\s*(?::[^=;{\n]{1,80})?=>", content[idx + 1:idx + 100]) is not None


def _followed_by_body(content: str, idx: int) -> bool:
    return re.match(r"\s*(?::[^{;\n]{1,120})?\{", content[idx + 1:idx + 150]) is not None


def extract_js_classes(content: str, file_path: str) -> list[ExtractedClass]:
    classes: list[ExtractedClass] = []
    for match in _JS_CLASS_RE.finditer(content):
        open_idx = match.end() - 1
        close = find_matching(content, open_idx)
        body = content[open_idx + 1:close] if close is not None else ""
        methods: list[str] = []
        top = blank_nested(body)
        for m in _JS_METHOD_RE.finditer(top):
            name = m.group(2)
            if name in _JS_KEYWORDS and name != "constructor":
                continue
            params, end = _params_after(top, m.end() - 1)
            if params is None or not _followed_by_body(top, end):
                continue
            if name not in methods:
                methods.append(name)
        classes.append(ExtractedClass(
            name=match.group(1),
            superclass=match.group(2),
            methods=methods,
            line=_line_of(content, match.start()),
        ))
    return classes


def _class_spans(content: str) -> list[tuple[int, int, str]]:
    spans = []
    for match in _JS_CLASS_RE.finditer(content):
        open_idx = match.end() - 1
        close = find_matching(content, open_idx)
        if close is not None:
            spans.append((open_idx, close, match.group(1)))
    return spans


def _enclosing_class(spans: list[tuple[int, int, str]], idx: int) -> Optional[str]:
    for start, end, name in spans:
        if start < idx < end:
            return name
    return None


def extract_js_functions(content: str, file_path: str) -> list[ExtractedFunction]:
    functions: list[ExtractedFunction] = []
    seen: set[tuple[str, Optional[str]]] = set()

    def _add(name: str, params: str, is_async: bool, idx: int,
             parent: Optional[str]) -> None:
        key = (name, parent)
        if key in seen or name in _JS_KEYWORDS:
            return
        seen.add(key)
        functions.append(ExtractedFunction(
            name=name, params=params, is_async=is_async,
            parent_class=parent, line=_line_of(content, idx),
        ))

    spans = _class_spans(content)

    for m in _JS_FUNC_DECL_RE.finditer(content):
        params, _ = _params_after(content, m.end() - 1)
        if params is not None:
            _add(m.group(2), params, bool(m.group(1)), m.start(), None)

    for m in _JS_FUNC_EXPR_RE.finditer(content):
        params, _ = _params_after(content, m.end() - 1)
        if params is not None:
            name = m.group(1).rsplit(".", 1)[-1]
            _add(name, params, bool(m.group(2)), m.start(), None)

    for m in _JS_ARROW_RE.finditer(content):
        tail = m.group(3)
        if tail == "(":
            params, end = _params_after(content, m.end() - 1)
            if params is None or not _followed_by_arrow(content, end):
                continue
        else:
            params = tail.split("=>")[0].strip()
        _add(m.group(1), params, bool(m.group(2)), m.start(), None)

    for m in _JS_PROPERTY_FUNC_RE.finditer(content):
        params, end = _params_after(content, m.end() - 1)
        if params is None:
            continue
        is_function_kw = "function" in m.group(0)
        if not is_function_kw and not _followed_by_arrow(content, end):
            continue
        _add(m.group(1), params, bool(m.group(2)), m.start(),
             _enclosing_class(spans, m.start()))

    # Class methods: only at the top level of each class body.
    for open_idx, close, class_name in spans:
        body = content[open_idx + 1:close]
        top = blank_nested(body)
        for m in _JS_METHOD_RE.finditer(top):
            name = m.group(2)
            if name in _JS_KEYWORDS and name != "constructor":
                continue
            params, end = _params_after(top, m.end() - 1)
            if params is None or not _followed_by_body(top, end):
                continue
            # params were read from the blanked copy; re-read from the source
            real_params, _ = _params_after(content, open_idx + 1 + m.end() - 1)
            _add(name, real_params if real_params is not None else params,
                 bool(m.group(1)), open_idx + 1 + m.start(), class_name)
    return functions


# ---------------------------------------------------------------------------
# Functions & classes: Python
# ---------------------------------------------------------------------------

_PY_CLASS_RE = re.compile(r"^([ \t]*)class\s+(\w+)\s*(?:\(([^)]*)\))?\s*:", re.MULTILINE)
_PY_DEF_RE = re.compile(r"^([ \t]*)(async\s+)?def\s+(\w+)\s*\(", re.MULTILINE)


def _indent_width(indent: str) -> int:
    return len(indent.replace("\t", "    "))


def _py_class_blocks(content: str) -> list[tuple[int, int, int, str, Optional[str]]]:
    """(start, end, indent, name, first base) for every class statement."""
    blocks = []
    lines = content.splitlines(keepends=True)
    offsets = []
    pos = 0
    for line in lines:
        offsets.append(pos)
        pos += len(line)
    for m in _PY_CLASS_RE.finditer(content):
        indent = _indent_width(m.group(1))
        start_line = _line_of(content, m.start())
        end = len(content)
        for i in range(start_line, len(lines)):
            line = lines[i]
            if not line.strip() or line.lstrip().startswith("#"):
                continue
            if _indent_width(line[:len(line) - len(line.lstrip())]) <= indent:
                end = offsets[i]
                break
        bases = [b.strip() for b in (m.group(3) or "").split(",") if b.strip()]
        bases = [b for b in bases if b != "object" and "=" not in b]
        blocks.append((m.start(), end, indent, m.group(2), bases[0] if bases else None))
    return blocks


def extract_py_classes(content: str, file_path: str) -> list[ExtractedClass]:
    classes = []
    blocks = _py_class_blocks(content)
    for start, end, indent, name, base in blocks:
        methods = []
        child_indent = None
        for m in _PY_DEF_RE.finditer(content, start, end):
            width = _indent_width(m.group(1))
            if width <= indent:
                continue
            if child_indent is None:
                child_indent = width
            if width == child_indent and m.group(3) not in methods:
                methods.append(m.group(3))
        classes.append(ExtractedClass(
            name=name, superclass=base, methods=methods,
            line=_line_of(content, start),
        ))
    return classes


def extract_py_functions(content: str, file_path: str) -> list[ExtractedFunction]:
    blocks = _py_class_blocks(content)
    functions = []
    for m in _PY_DEF_RE.finditer(content):
        params, _ = _params_after(content, m.end() - 1)
        if params is None:
            continue
        width = _indent_width(m.group(1))
        parent = None
        for start, end, indent, name, _base in blocks:
            if start < m.start() < end and width > indent:
                parent = name   # innermost wins: blocks are in source order
        functions.append(ExtractedFunction(
            name=m.group(3), params=params, is_async=bool(m.group(2)),
            parent_class=parent, line=_line_of(content, m.start()),
        ))
    return functions


# ---------------------------------------------------------------------------
# Exports & imports
# ---------------------------------------------------------------------------

_CJS_EXPORT_OBJECT_RE = re.compile(r"\bmodule\.exports\s*=\s*\{")
_CJS_EXPORT_VALUE_RE = re.compile(rf"\bmodule\.exports\s*=\s*({_IDENT})\s*;?\s*$", re.MULTILINE)
_CJS_EXPORT_PROP_RE = re.compile(rf"\b(?:module\.)?exports\.({_IDENT})\s*=(?!=)")
_ES_NAMED_EXPORT_RE = re.compile(
    rf"\bexport\s+(?:declare\s+)?(?:async\s+)?"
    rf"(const|let|var|function\*?|class|interface|type|enum|abstract\s+class)\s+({_IDENT})")
_ES_DEFAULT_EXPORT_RE = re.compile(
    rf"\bexport\s+default\s+(?:async\s+)?(?:function\*?\s*|class\s+)?({_IDENT})")
_ES_EXPORT_LIST_RE = re.compile(r"\bexport\s*(?:type\s*)?\{([^}]*)\}")
_PY_ALL_RE = re.compile(r"^__all__\s*=\s*[\[(]([^\])]*)[\])]", re.MULTILINE)


def split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split *text* on *sep* outside of brackets and quotes; empty parts dropped."""
    parts: list[str] = []
    depth = 0
    quote: Optional[str] = None
    start = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in ("'", '"', "`"):
            quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth = max(0, depth - 1)
        elif ch == sep and depth == 0:
            parts.append(text[start:i].strip())
            start = i + 1
        i += 1
    parts.append(text[start:].strip())
    return [p for p in parts if p]


def extract_exports(content: str, file_path: str) -> dict[str, str]:
    """Named and default export bindings as ``{name: value}``."""
    exports: dict[str, str] = {}
    ext = file_extension(file_path)
    if ext in PYTHON_EXTENSIONS:
        for m in _PY_ALL_RE.finditer(content):
            for name in re.findall(r"['\"](\w+)['\"]", m.group(1)):
                exports[name] = name
        return exports

    for m in _CJS_EXPORT_OBJECT_RE.finditer(content):
        open_idx = m.end() - 1
        close = find_matching(content, open_idx)
        if close is None:
            continue
        for part in split_top_level(content[open_idx + 1:close]):
            if part.startswith("..."):
                continue
            if ":" in part:
                key, value = part.split(":", 1)
                key = key.strip().strip("'\"")
                value = _squash(value) or key
            else:
                key = value = part.strip()
            if re.fullmatch(_IDENT, key):
                exports[key] = value[:120]
    for m in _CJS_EXPORT_VALUE_RE.finditer(content):
        exports["default"] = m.group(1)
    for m in _CJS_EXPORT_PROP_RE.finditer(content):
        exports.setdefault(m.group(1), m.group(1))
    for m in _ES_NAMED_EXPORT_RE.finditer(content):
        exports[m.group(2)] = m.group(2)
    for m in _ES_DEFAULT_EXPORT_RE.finditer(content):
        exports["default"] = m.group(1)
    for m in _ES_EXPORT_LIST_RE.finditer(content):
        for item in m.group(1).split(","):
            item = item.strip()
            if not item:
                continue
            if " as " in item:
                local, exported = [p.strip() for p in item.split(" as ", 1)]
            else:
                local = exported = item
            if re.fullmatch(_IDENT, exported):
                exports[exported] = local
    return exports


_ES_IMPORT_RE = re.compile(
    r"\bimport\s+(?:type\s+)?(?:([\w$*\s{},]+?)\s+from\s+)?['\"]([^'\"]+)['\"]")
_REQUIRE_RE = re.compile(r"\brequire\(\s*['\"]([^'\"]+)['\"]\s*\)")
_PY_FROM_IMPORT_RE = re.compile(r"^\s*from\s+([\w.]+)\s+import\s+\(?([^)\n]+)", re.MULTILINE)
_PY_IMPORT_RE = re.compile(r"^\s*import\s+([\w.]+(?:\s*,\s*[\w.]+)*)\s*$", re.MULTILINE)


def extract_imports(content: str, file_path: str) -> list[ExtractedImport]:
    imports: list[ExtractedImport] = []
    ext = file_extension(file_path)
    if ext in PYTHON_EXTENSIONS:
        for m in _PY_FROM_IMPORT_RE.finditer(content):
            names = [n.strip().split(" as ")[0] for n in m.group(2).split(",")]
            imports.append(ExtractedImport(m.group(1), [n for n in names if n]))
        for m in _PY_IMPORT_RE.finditer(content):
            for mod in m.group(1).split(","):
                imports.append(ExtractedImport(mod.strip()))
        return imports

    for m in _ES_IMPORT_RE.finditer(content):
        clause = m.group(1) or ""
        names = []
        braced = re.search(r"\{([^}]*)\}", clause)
        if braced:
            names.extend(n.strip().split(" as ")[0].strip()
                         for n in braced.group(1).split(",") if n.strip())
            clause = clause.replace(braced.group(0), "")
        default = clause.strip().strip(",").strip()
        if default:
            names.insert(0, "default" if not default.startswith("*") else "*")
        imports.append(ExtractedImport(m.group(2), names))
    for m in _REQUIRE_RE.finditer(content):
        imports.append(ExtractedImport(m.group(1)))
    return imports


# ---------------------------------------------------------------------------
# API routes
# ---------------------------------------------------------------------------

HTTP_VERBS = ("get", "post", "put", "patch", "delete", "head", "options", "all")

_ROUTE_CALL_RE = re.compile(
    rf"\b({_IDENT})\.({'|'.join(HTTP_VERBS)})\s*\(\s*(['\"`])([/*][^'\"`]*)\3\s*,\s*")
_ROUTE_DECORATOR_RE = re.compile(
    r"^\s*@(\w+)\.(get|post|put|patch|delete|head|options|route|api_route)\s*\(\s*"
    r"['\"]([^'\"]+)['\"]", re.MULTILINE)
_PY_NEXT_DEF_RE = re.compile(r"^\s*(?:async\s+)?def\s+(\w+)", re.MULTILINE)


def _handler_name(rest: str) -> str:
    rest = rest.lstrip()
    if rest.startswith(("async", "function", "(")) or re.match(rf"{_IDENT}\s*=>", rest):
        return "<anonymous>"
    m = re.match(rf"{_IDENT}(?:\.{_IDENT})*", rest)
    return m.group(0) if m else "<anonymous>"


def extract_api_routes(content: str, file_path: str) -> list[ExtractedRoute]:
    """``<object>.<verb>('<path>', <handler>)`` calls and ``@app.<verb>('<path>')`` decorators."""
    routes: list[ExtractedRoute] = []
    for m in _ROUTE_CALL_RE.finditer(content):
        rest = content[m.end():m.end() + 200]
        # middleware chains: the handler is the last argument
        close = find_matching(content, content.rfind("(", m.start(), m.end()))
        if close is not None:
            args = split_top_level(content[m.end():close])
            if args:
                rest = args[-1]
        routes.append(ExtractedRoute(
            method=m.group(2).upper(),
            path=m.group(4),
            handler=_handler_name(rest),
        ))
    for m in _ROUTE_DECORATOR_RE.finditer(content):
        verb = m.group(2).upper()
        if verb in ("ROUTE", "API_ROUTE"):
            verb = "ANY"
        nxt = _PY_NEXT_DEF_RE.search(content, m.end())
        routes.append(ExtractedRoute(
            method=verb,
            path=m.group(3),
            handler=nxt.group(1) if nxt else "<anonymous>",
        ))
    return routes


# ---------------------------------------------------------------------------
# Embedded human-readable text (markup-flavored files)
# ---------------------------------------------------------------------------

MIN_LITERAL_LENGTH = 15

_INTER_TAG_RE = re.compile(r">([^<>{}\n]+)<")
_DQ_LITERAL_RE = re.compile(r'"([^"\n]{%d,})"' % MIN_LITERAL_LENGTH)
_SQ_LITERAL_RE = re.compile(r"'([^'\n]{%d,})'" % MIN_LITERAL_LENGTH)
_TEMPLATE_LITERAL_RE = re.compile(r"`([^`]{%d,})`" % MIN_LITERAL_LENGTH)
_ATTRIBUTE_RE = re.compile(
    r"\b(title|alt|aria-label|placeholder|label|description)\s*=\s*[\"']([^\"']{5,})[\"']")
_BLOCK_COMMENT_RE = re.compile(r"/\*(?!\*)([^*]+)\*/")
_HTML_COMMENT_RE = re.compile(r"<!--([\s\S]*?)-->")


def _descriptive(text: str) -> bool:
    if " " not in text:
        return False
    lowered = text.lower()
    if "http://" in lowered or "https://" in lowered:
        return False
    if any(marker in text for marker in ("className", "import ", "export ", "=>", "${")):
        return False
    return re.search(r"[A-Za-z]{3}", text) is not None


def extract_text_blocks(content: str, file_path: str) -> list[tuple[str, str]]:
    """(text_type, text) pairs of human-readable text found in markup."""
    blocks: list[tuple[str, str]] = []
    seen: set[str] = set()

    def _add(text_type: str, text: str) -> None:
        text = _squash(text)
        if text and text not in seen:
            seen.add(text)
            blocks.append((text_type, text))

    for m in _INTER_TAG_RE.finditer(content):
        text = m.group(1).strip()
        if len(text) > 3 and not re.fullmatch(r"[a-z]+", text) and re.search(r"[A-Za-z]", text):
            _add("inter-tag", text)
    for m in _ATTRIBUTE_RE.finditer(content):
        _add("attribute", m.group(2))
    for pattern in (_DQ_LITERAL_RE, _SQ_LITERAL_RE):
        for m in pattern.finditer(content):
            if _descriptive(m.group(1)):
                _add("string-literal", m.group(1))
    for m in _TEMPLATE_LITERAL_RE.finditer(content):
        if "${" not in m.group(1) and _descriptive(m.group(1)):
            _add("template-literal", m.group(1))
    for pattern in (_BLOCK_COMMENT_RE, _HTML_COMMENT_RE):
        for m in pattern.finditer(content):
            text = m.group(1).strip()
            if len(text) > MIN_COMMENT_LENGTH and not _excluded(text):
                _add("comment", text)
    return blocks


# ---------------------------------------------------------------------------
# Structured data literals
# ---------------------------------------------------------------------------

_STRUCTURED_RE = re.compile(
    rf"\b(?:const|let|var)\s+({_IDENT})\s*(?::[^=\n]{{1,80}})?=\s*(?:Object\.freeze\(\s*)?([\[{{])")
MAX_STRUCTURED_ITEMS = 20
MAX_STRUCTURED_CHARS = 500


def extract_structured_data(content: str, file_path: str) -> dict[str, str]:
    """Named array / object literals: ``{name: compact literal text}``."""
    data: dict[str, str] = {}
    for m in _STRUCTURED_RE.finditer(content):
        if len(data) >= MAX_STRUCTURED_ITEMS:
            break
        open_idx = m.end() - 1
        close = find_matching(content, open_idx)
        if close is None:
            continue
        literal = _squash(content[open_idx:close + 1])
        if 20 <= len(literal) <= MAX_STRUCTURED_CHARS:
            data[m.group(1)] = literal
    return data


# ---------------------------------------------------------------------------
# Markdown & configuration documents
# ---------------------------------------------------------------------------

_FRONT_MATTER_RE = re.compile(r"\A---\s*\n([\s\S]*?)\n---\s*(?:\n|\Z)")
_MD_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$", re.MULTILINE)
MAX_HEADINGS = 20


def extract_page(content: str, file_path: str) -> Optional[ExtractedPage]:
    page = ExtractedPage()
    body = content
    fm = _FRONT_MATTER_RE.match(content)
    if fm:
        body = content[fm.end():]
        try:
            meta = yaml.safe_load(fm.group(1))
        except yaml.YAMLError:
            meta = None
        if isinstance(meta, dict):
            page.title = str(meta.get("title") or "")
            page.description = str(meta.get("description") or meta.get("excerpt") or "")
            tags = meta.get("tags")
            if isinstance(tags, list):
                page.tags = [str(t) for t in tags]
            elif isinstance(tags, str):
                page.tags = [t.strip() for t in tags.split(",") if t.strip()]

    headings = [m.group(2).strip() for m in _MD_HEADING_RE.finditer(body)]
    page.headings = headings[:MAX_HEADINGS]
    if not page.title and headings:
        page.title = headings[0]
    if not page.description:
        for para in re.split(r"\n\s*\n", body):
            para = para.strip()
            if not para or para.startswith(("#", "```", "<", "!", "|", "[!", "---")):
                continue
            page.description = _squash(para)[:300]
            break
    if not (page.title or page.description or page.headings):
        return None
    return page


def _names(value) -> list[str]:
    if isinstance(value, dict):
        return [str(k) for k in value]
    if isinstance(value, list):
        return [str(v) for v in value if isinstance(v, (str, int, float))]
    return []


def extract_config(content: str, file_path: str) -> Optional[ExtractedConfig]:
    ext = file_extension(file_path)
    base = os.path.basename(file_path).lower()
    if ext == ".json":
        data = json.loads(content)
        fmt = "package" if base == "package.json" else "json"
    elif ext in (".yaml", ".yml"):
        data = yaml.safe_load(content)
        fmt = "yaml"
    elif ext == ".toml":
        data = tomllib.loads(content)
        fmt = "package" if base == "pyproject.toml" else "toml"
    elif ext in (".ini", ".cfg", ".conf"):
        parser = configparser.ConfigParser(strict=False, interpolation=None)
        parser.read_string(content)
        return ExtractedConfig(format="ini", keys=parser.sections())
    else:
        return None

    if not isinstance(data, dict):
        return ExtractedConfig(format=fmt)
    config = ExtractedConfig(format=fmt, keys=[str(k) for k in data])
    if base == "package.json":
        config.name = str(data.get("name") or "")
        config.description = str(data.get("description") or "")
        config.scripts = _names(data.get("scripts"))
        config.dependencies = (_names(data.get("dependencies"))
                               + _names(data.get("devDependencies")))
    elif base == "pyproject.toml":
        project = data.get("project") if isinstance(data.get("project"), dict) else {}
        config.name = str(project.get("name") or "")
        config.description = str(project.get("description") or "")
        config.scripts = _names(project.get("scripts"))
        config.dependencies = [re.split(r"[<>=!~ \[;]", d, maxsplit=1)[0]
                               for d in _names(project.get("dependencies"))]
    else:
        config.name = str(data.get("name") or "")
        config.description = str(data.get("description") or "")
    return config


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

Matcher = Callable[[str, str], object]


def _is_js(path: str) -> bool:
    return file_extension(path) in JS_EXTENSIONS


def _is_py(path: str) -> bool:
    return file_extension(path) in PYTHON_EXTENSIONS


def _is_code(path: str) -> bool:
    return _is_js(path) or _is_py(path)


def _js_or_py(js: Matcher, py: Matcher) -> Matcher:
    def _dispatch(content: str, file_path: str):
        return py(content, file_path) if _is_py(file_path) else js(content, file_path)
    return _dispatch


# (result attribute, matcher, applies-to predicate)
EXTRACTORS: list[tuple[str, Matcher, Callable[[str], bool]]] = [
    ("doc_comments", extract_doc_comments, lambda p: True),
    ("line_comments", extract_line_comments, lambda p: True),
    ("functions", _js_or_py(extract_js_functions, extract_py_functions), _is_code),
    ("classes", _js_or_py(extract_js_classes, extract_py_classes), _is_code),
    ("exports", extract_exports, _is_code),
    ("imports", extract_imports, _is_code),
    ("api_routes", extract_api_routes, _is_code),
    ("text_blocks", extract_text_blocks,
     lambda p: file_extension(p) in MARKUP_EXTENSIONS),
    ("structured_data", extract_structured_data, _is_js),
    ("page", extract_page, lambda p: file_extension(p) in MARKDOWN_EXTENSIONS),
    ("config", extract_config, lambda p: file_extension(p) in CONFIG_EXTENSIONS),
]


def extract(content: str, file_path: str) -> ExtractedKnowledge:
    """
    Run every applicable matcher over *content*.

    Parameters
    ----------
    content:
        Raw file text.
    file_path:
        Logical repository path; only the extension and base name are used
        to pick matchers.

    Returns
    -------
    ExtractedKnowledge
        Partial on failure: a matcher that raises leaves its category at the
        default value and is listed in ``errors``.
    """
    ext = file_extension(file_path)
    knowledge = ExtractedKnowledge(file_path=file_path, file_type=ext.lstrip("."))
    if not content:
        return knowledge
    for attr, matcher, applies in EXTRACTORS:
        try:
            if not applies(file_path):
                continue
            setattr(knowledge, attr, matcher(content, file_path))
        except Exception as exc:
            logger.debug("[Extractor] %s failed on %s: %s", attr, file_path, exc)
            knowledge.errors.append(attr)
    return knowledge

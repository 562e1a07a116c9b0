"""Lightweight code-unit extraction used by the default scanner.

Python files are read with :mod:`ast`; TypeScript, JavaScript and Go are
handled lexically by masking comments and string literals and matching
braces. Markdown files yield one unit per heading section.
"""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional


@dataclass(frozen=True)
class CodeUnit:
    """A named span of a source file."""

    type: str
    name: str
    start_line: int
    end_line: int
    exported: bool
    signature: Optional[str] = None
    docstring: Optional[str] = None


def extract_units(language: str, text: str) -> List[CodeUnit]:
    """Return the units of ``text``; raises ``SyntaxError`` for unparsable Python."""
    extractor = EXTRACTORS.get(language)
    if extractor is None:
        return []
    return sorted(extractor(text), key=lambda unit: (unit.start_line, unit.name))


# Python ---------------------------------------------------------------------


def _python_signature(node: ast.FunctionDef | ast.AsyncFunctionDef) -> str:
    prefix = "async def" if isinstance(node, ast.AsyncFunctionDef) else "def"
    signature = f"{prefix} {node.name}({ast.unparse(node.args)})"
    if node.returns is not None:
        signature += f" -> {ast.unparse(node.returns)}"
    return signature


def _python_start(node: ast.AST) -> int:
    decorators = getattr(node, "decorator_list", [])
    return min([node.lineno, *(d.lineno for d in decorators)])


def extract_python(text: str) -> List[CodeUnit]:
    tree = ast.parse(text)
    units: List[CodeUnit] = []
    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            units.append(
                CodeUnit(
                    type="function",
                    name=node.name,
                    start_line=_python_start(node),
                    end_line=node.end_lineno or node.lineno,
                    exported=not node.name.startswith("_"),
                    signature=_python_signature(node),
                    docstring=ast.get_docstring(node),
                )
            )
        elif isinstance(node, ast.ClassDef):
            class_exported = not node.name.startswith("_")
            bases = ", ".join(ast.unparse(base) for base in node.bases)
            units.append(
                CodeUnit(
                    type="class",
                    name=node.name,
                    start_line=_python_start(node),
                    end_line=node.end_lineno or node.lineno,
                    exported=class_exported,
                    signature=f"class {node.name}({bases})" if bases else f"class {node.name}",
                    docstring=ast.get_docstring(node),
                )
            )
            for child in node.body:
                if not isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef)):
                    continue
                units.append(
                    CodeUnit(
                        type="method",
                        name=f"{node.name}.{child.name}",
                        start_line=_python_start(child),
                        end_line=child.end_lineno or child.lineno,
                        exported=class_exported and not child.name.startswith("_"),
                        signature=_python_signature(child),
                        docstring=ast.get_docstring(child),
                    )
                )
    return units


# Brace languages ------------------------------------------------------------


def mask_comments_and_strings(text: str) -> str:
    """Blank out comments and string literal bodies, keeping newlines and length."""
    out: List[str] = []
    index = 0
    length = len(text)
    while index < length:
        char = text[index]
        pair = text[index : index + 2]
        if pair == "//":
            end = text.find("\n", index)
            end = length if end == -1 else end
            out.append(" " * (end - index))
            index = end
        elif pair == "/*":
            end = text.find("*/", index + 2)
            end = length if end == -1 else end + 2
            out.append("".join(c if c == "\n" else " " for c in text[index:end]))
            index = end
        elif char in "\"'`":
            end = index + 1
            while end < length and text[end] != char:
                if text[end] == "\\":
                    end += 1
                elif text[end] == "\n" and char != "`":
                    break
                end += 1
            if end < length:
                end += 1
            segment = text[index:end]
            if len(segment) < 2:
                out.append(segment)
            else:
                body = "".join(c if c == "\n" else " " for c in segment[1:-1])
                out.append(segment[0] + body + segment[-1])
            index = end
        else:
            out.append(char)
            index += 1
    return "".join(out)


def _depths_before(lines: List[str]) -> List[int]:
    depths: List[int] = []
    depth = 0
    for line in lines:
        depths.append(depth)
        depth = max(0, depth + line.count("{") - line.count("}"))
    return depths


def _block_end(lines: List[str], start_index: int) -> int:
    """1-based line closing the block opened at or after ``start_index``."""
    depth = 0
    opened = False
    for index in range(start_index, len(lines)):
        for char in lines[index]:
            if char == "{":
                depth += 1
                opened = True
            elif char == "}":
                depth -= 1
                if opened and depth == 0:
                    return index + 1
            elif char == ";" and not opened and depth == 0:
                return index + 1
    return len(lines) if opened else start_index + 1


_IDENT = r"[A-Za-z_$][A-Za-z0-9_$]*"
_TS_CLASS_RE = re.compile(rf"^\s*(export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+({_IDENT})")
_TS_INTERFACE_RE = re.compile(rf"^\s*(export\s+)?(?:declare\s+)?interface\s+({_IDENT})")
_TS_TYPE_RE = re.compile(rf"^\s*(export\s+)?(?:declare\s+)?type\s+({_IDENT})\s*(?:<[^=]*>)?\s*=")
_TS_FUNCTION_RE = re.compile(
    rf"^\s*(export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*({_IDENT})\s*(<[^(]*>)?\s*\(([^)]*)\)?"
)
_TS_BINDING_RE = re.compile(rf"^\s*(export\s+)(?:const|let|var)\s+({_IDENT})\b(.*)$")
_TS_METHOD_RE = re.compile(
    rf"^\s*(?:(?:public|private|protected|static|readonly|override|abstract|async|get|set)\s+)*"
    rf"(#?{_IDENT})\s*(?:<[^(]*>)?\s*\(([^)]*)\)?[^;]*$"
)
_TS_ARROW_RE = re.compile(r"=\s*(?:async\s+)?(?:function\b|\([^)]*\)\s*(?::[^=]*)?=>|[A-Za-z_$][A-Za-z0-9_$]*\s*=>)")
_TS_SKIP_METHODS = {"if", "for", "while", "switch", "catch", "function", "return", "super"}


def extract_ts_js(text: str) -> List[CodeUnit]:
    masked = mask_comments_and_strings(text).splitlines()
    depths = _depths_before(masked)
    units: List[CodeUnit] = []

    for index, line in enumerate(masked):
        if depths[index] != 0:
            continue
        line_number = index + 1

        match = _TS_CLASS_RE.match(line)
        if match:
            exported = bool(match.group(1))
            name = match.group(2)
            end_line = _block_end(masked, index)
            units.append(CodeUnit("class", name, line_number, end_line, exported))
            units.extend(_ts_methods(masked, depths, name, exported, index + 1, end_line))
            continue

        match = _TS_INTERFACE_RE.match(line)
        if match:
            units.append(
                CodeUnit(
                    "interface", match.group(2), line_number, _block_end(masked, index), bool(match.group(1))
                )
            )
            continue

        match = _TS_TYPE_RE.match(line)
        if match:
            units.append(
                CodeUnit("type", match.group(2), line_number, _block_end(masked, index), bool(match.group(1)))
            )
            continue

        match = _TS_FUNCTION_RE.match(line)
        if match:
            params = (match.group(4) or "").strip()
            units.append(
                CodeUnit(
                    type="function",
                    name=match.group(2),
                    start_line=line_number,
                    end_line=_block_end(masked, index),
                    exported=bool(match.group(1)),
                    signature=f"function {match.group(2)}({params})",
                )
            )
            continue

        match = _TS_BINDING_RE.match(line)
        if match:
            is_function = bool(_TS_ARROW_RE.search(match.group(3)))
            units.append(
                CodeUnit(
                    type="function" if is_function else "variable",
                    name=match.group(2),
                    start_line=line_number,
                    end_line=_block_end(masked, index),
                    exported=True,
                )
            )
    return units


def _ts_methods(
    masked: List[str],
    depths: List[int],
    class_name: str,
    exported: bool,
    first_index: int,
    end_line: int,
) -> List[CodeUnit]:
    methods: List[CodeUnit] = []
    for index in range(first_index, min(end_line, len(masked))):
        if depths[index] != 1:
            continue
        match = _TS_METHOD_RE.match(masked[index])
        if not match or match.group(1) in _TS_SKIP_METHODS:
            continue
        name = match.group(1)
        methods.append(
            CodeUnit(
                type="method",
                name=f"{class_name}.{name}",
                start_line=index + 1,
                end_line=min(_block_end(masked, index), end_line),
                exported=exported and not name.startswith("#"),
                signature=f"{name}({(match.group(2) or '').strip()})",
            )
        )
    return methods


_GO_FUNC_RE = re.compile(r"^\s*func\s*(?:\(([^)]*)\)\s*)?([A-Za-z_][A-Za-z0-9_]*)\s*(?:\[[^\]]*\])?\s*\(([^)]*)\)?")
_GO_TYPE_RE = re.compile(r"^\s*type\s+([A-Za-z_][A-Za-z0-9_]*)(?:\s*\[[^\]]*\])?(?:\s+(struct|interface)\b)?")


def _go_receiver_type(receiver: str) -> str:
    parts = receiver.replace("*", " ").split()
    return parts[-1].split("[", 1)[0] if parts else ""


def extract_go(text: str) -> List[CodeUnit]:
    masked = mask_comments_and_strings(text).splitlines()
    depths = _depths_before(masked)
    units: List[CodeUnit] = []

    for index, line in enumerate(masked):
        if depths[index] != 0:
            continue
        line_number = index + 1

        match = _GO_FUNC_RE.match(line)
        if match:
            receiver, name, params = match.groups()
            end_line = _block_end(masked, index)
            exported = name[:1].isupper()
            if receiver:
                owner = _go_receiver_type(receiver)
                units.append(
                    CodeUnit(
                        type="method",
                        name=f"{owner}.{name}" if owner else name,
                        start_line=line_number,
                        end_line=end_line,
                        exported=exported,
                        signature=f"func ({receiver.strip()}) {name}({(params or '').strip()})",
                    )
                )
            else:
                units.append(
                    CodeUnit(
                        type="function",
                        name=name,
                        start_line=line_number,
                        end_line=end_line,
                        exported=exported,
                        signature=f"func {name}({(params or '').strip()})",
                    )
                )
            continue

        match = _GO_TYPE_RE.match(line)
        if match:
            name, kind = match.groups()
            unit_type = kind if kind else "type"
            if unit_type == "struct" or unit_type == "interface":
                end_line = _block_end(masked, index)
            else:
                end_line = line_number
            units.append(CodeUnit(unit_type, name, line_number, end_line, name[:1].isupper()))
    return units


# Markdown -------------------------------------------------------------------

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")


def extract_markdown(text: str) -> List[CodeUnit]:
    """One ``documentation`` unit per heading; text before the first heading is ignored."""
    lines = text.splitlines()
    headings: List[tuple[int, str]] = []
    in_fence = False
    for index, line in enumerate(lines):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = _HEADING_RE.match(line)
        if match:
            headings.append((index + 1, match.group(2)))

    units: List[CodeUnit] = []
    for position, (start_line, title) in enumerate(headings):
        end_line = headings[position + 1][0] - 1 if position + 1 < len(headings) else len(lines)
        units.append(CodeUnit("documentation", title, start_line, max(start_line, end_line), False))
    return units


EXTRACTORS: Dict[str, Callable[[str], List[CodeUnit]]] = {
    "python": extract_python,
    "typescript": extract_ts_js,
    "javascript": extract_ts_js,
    "go": extract_go,
    "markdown": extract_markdown,
}


__all__ = [
    "CodeUnit",
    "EXTRACTORS",
    "extract_go",
    "extract_markdown",
    "extract_python",
    "extract_ts_js",
    "extract_units",
    "mask_comments_and_strings",
]

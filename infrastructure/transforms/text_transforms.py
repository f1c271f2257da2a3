# infrastructure/transforms/text_transforms.py
"""
Line-oriented transforms driven by regular expressions.

Matching runs over a copy of the source with string literals and comments
blanked out, so every declaration of a name is counted wherever it sits.
Only a declaration that starts its own line (attributes and modifiers
allowed in front of ``var``/``let``) can be rewritten; other shapes fail
with a typed error and are left to the syntax-tree strategy.
"""
import re
from typing import List, Optional, Tuple

from domain.errors import (
    AlreadyHasWrapperError,
    MultipleMatchesError,
    PropertyNotFoundError,
    TargetNotFoundError,
    TransformFailedError,
)
from domain.models.task_intent import AddBinding, AddImport, AddInlineComment, AddStateObject, TaskIntent
from domain.models.transform import TransformContext, TransformResult
from infrastructure.syntax.swift_tree import DECLARATION_MODIFIERS, TokenKind, tokenize
from infrastructure.transforms.base import EXISTING_WRAPPERS, DeterministicTransform, wrapper_for_type

_ATTRIBUTES = r"(?P<attributes>(?:@\w+(?:\([^)]*\))?\s+)*)"
_MODIFIERS = r"(?P<modifiers>(?:(?:" + "|".join(sorted(DECLARATION_MODIFIERS)) + r")(?:\(\w+\))?\s+)*)"
_PREFIX = r"^(?P<indent>[ \t]*)" + _ATTRIBUTES + _MODIFIERS
_DECLARATION = re.compile(r"(?:^|[{};])\s*" + _ATTRIBUTES + _MODIFIERS + r"(?P<specifier>var|let)\s+(?P<name>\w+)\b")
_ANNOTATION = re.compile(r"\s*:\s*(?P<type>[^={};]+)")
_ATTRIBUTE_LINE = re.compile(r"^\s*(?:@\w+(?:\([^)]*\))?\s*)+$")
_WRAPPER = re.compile(r"@(?P<name>" + "|".join(sorted(EXISTING_WRAPPERS)) + r")\b")
_IMPORT_LINE = re.compile(r"^\s*(?:@\w+\s+)*import\s+(?:(?:struct|class|enum|protocol|typealias|func|var|let)\s+)?(?P<module>[\w.]+)")

_OPAQUE_KINDS = frozenset({TokenKind.STRING, TokenKind.LINE_COMMENT, TokenKind.BLOCK_COMMENT})


def code_lines(source: str) -> List[str]:
    """Lines of ``source`` with string literals and comments blanked to spaces.

    Line count and column offsets are the same as in ``source.split("\\n")``.
    """
    parts = []
    for token in tokenize(source):
        if token.kind in _OPAQUE_KINDS:
            parts.append(re.sub(r"[^\r\n]", " ", token.text))
        else:
            parts.append(token.text)
    return "".join(parts).split("\n")


def _normalize_type(type_text: str) -> str:
    return re.sub(r"\s+", "", type_text)


def find_declarations(lines: List[str], property_name: str,
                      type_name: Optional[str] = None) -> List[Tuple[int, "re.Match"]]:
    """Every ``var``/``let`` declaration of ``property_name`` in blanked ``lines``.

    A declaration whose explicit type differs from ``type_name`` is skipped;
    one without an annotation still counts.
    """
    found = []
    for index, line in enumerate(lines):
        for match in _DECLARATION.finditer(line):
            if match.group("name") != property_name:
                continue
            annotation = _ANNOTATION.match(line, match.end())
            if (type_name and annotation
                    and _normalize_type(annotation.group("type")) != _normalize_type(type_name)):
                continue
            found.append((index, match))
    return found


def _existing_wrapper(lines: List[str], index: int, declaration: "re.Match") -> Optional[str]:
    wrapper = _WRAPPER.search(declaration.group("attributes"))
    if wrapper:
        return wrapper.group("name")

    # Attributes may sit on their own lines above a declaration that starts its line
    if lines[index][:declaration.start("attributes")].strip():
        return None
    above = index - 1
    while above >= 0 and _ATTRIBUTE_LINE.match(lines[above]):
        wrapper = _WRAPPER.search(lines[above])
        if wrapper:
            return wrapper.group("name")
        above -= 1
    return None


def _find_single_declaration(source: str, pattern: "re.Pattern", property_name: str,
                             type_name: Optional[str] = None) -> Tuple[int, "re.Match"]:
    """Index and rewrite match of the one line declaring ``property_name``.

    ``pattern`` is matched against the blanked line; its group offsets are
    valid in the original line.
    """
    blanked = code_lines(source)
    found = find_declarations(blanked, property_name, type_name)
    if not found:
        raise PropertyNotFoundError(property_name)
    if len(found) > 1:
        raise MultipleMatchesError(property_name, len(found))

    index, declaration = found[0]
    wrapper = _existing_wrapper(blanked, index, declaration)
    if wrapper:
        raise AlreadyHasWrapperError(property_name, wrapper)

    match = pattern.match(blanked[index])
    if match is None or match.start("specifier") != declaration.start("specifier"):
        raise TransformFailedError(
            f"Declaration of '{property_name}' on line {index + 1} does not fit a line-based rewrite",
            identifier=property_name,
        )
    return index, match


def _lead_and_modifiers(line: str, match: "re.Match") -> Tuple[str, str]:
    """Indentation with attributes, and the modifiers, as written in the original line"""
    return line[:match.end("attributes")], line[match.start("modifiers"):match.end("modifiers")]


def _trailing_comment(line: str) -> Optional[str]:
    significant = [token for token in tokenize(line) if token.kind not in (TokenKind.WHITESPACE, TokenKind.NEWLINE)]
    if significant and significant[-1].kind == TokenKind.LINE_COMMENT:
        return significant[-1].text
    return None


class StateObjectTransform(DeterministicTransform):
    supported_intents = ("addStateObject",)

    def apply(self, source: str, intent: TaskIntent, context: TransformContext) -> TransformResult:
        self._expect(intent, AddStateObject)

        pattern = re.compile(
            _PREFIX
            + r"(?P<specifier>var|let)\s+"
            + re.escape(intent.property)
            + r"\s*:\s*"
            + re.escape(intent.type)
            + r"(?![\w.])"
        )
        index, match = _find_single_declaration(source, pattern, intent.property, intent.type)

        lines = source.split("\n")
        line = lines[index]
        wrapper = wrapper_for_type(intent.type)
        lead, modifiers = _lead_and_modifiers(line, match)
        lines[index] = f"{lead}@{wrapper} {modifiers}var " + line[match.end("specifier"):].lstrip()
        return self._result(source, "\n".join(lines), context)


class BindingTransform(DeterministicTransform):
    supported_intents = ("addBinding",)

    def apply(self, source: str, intent: TaskIntent, context: TransformContext) -> TransformResult:
        self._expect(intent, AddBinding)

        pattern = re.compile(
            _PREFIX
            + r"(?P<specifier>var|let)\s+"
            + re.escape(intent.property)
            + r"\s*:\s*(?P<type>[^={;]+?)\s*(?:=[^;]*)?$"
        )
        index, match = _find_single_declaration(source, pattern, intent.property)

        lines = source.split("\n")
        line = lines[index]
        # @Binding cannot have an initializer; a trailing comment survives
        lead, modifiers = _lead_and_modifiers(line, match)
        rewritten = f"{lead}@Binding {modifiers}var {intent.property}: {match.group('type').strip()}"
        comment = _trailing_comment(line)
        if comment:
            rewritten = f"{rewritten} {comment}"
        if line.endswith("\r"):
            rewritten += "\r"
        lines[index] = rewritten
        return self._result(source, "\n".join(lines), context)


def leading_import_index(lines: List[str]) -> Optional[int]:
    """Index of the last import in the contiguous block at the top of the file"""
    last = None
    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped or stripped.startswith("//"):
            continue
        if _IMPORT_LINE.match(line):
            last = index
            continue
        break
    return last


class ImportTransform(DeterministicTransform):
    supported_intents = ("addImport",)

    def apply(self, source: str, intent: TaskIntent, context: TransformContext) -> TransformResult:
        self._expect(intent, AddImport)

        lines = source.split("\n")
        for line in lines:
            match = _IMPORT_LINE.match(line)
            if match and match.group("module") == intent.module:
                return self._no_op(source, f"Module '{intent.module}' is already imported")

        statement = f"import {intent.module}"
        last = leading_import_index(lines)
        if last is None:
            lines.insert(0, statement)
        else:
            lines.insert(last + 1, statement)
        return self._result(source, "\n".join(lines), context)


class InlineCommentTransform(DeterministicTransform):
    supported_intents = ("addInlineComment",)

    def apply(self, source: str, intent: TaskIntent, context: TransformContext) -> TransformResult:
        self._expect(intent, AddInlineComment)

        lines = source.split("\n")
        # A trailing newline does not open another addressable line
        line_count = len(lines) - 1 if source.endswith("\n") else len(lines)
        if not 1 <= intent.line <= line_count:
            raise TargetNotFoundError(
                f"{intent.file}:{intent.line}",
                f"Line {intent.line} is outside {intent.file} ({line_count} lines)",
            )

        index = intent.line - 1
        target = lines[index]
        indent = target[:len(target) - len(target.lstrip())]
        comment = f"// {intent.reason.strip()}"

        if index > 0 and lines[index - 1].strip() == comment:
            return self._no_op(source, f"Comment already present above line {intent.line}")

        lines.insert(index, f"{indent}{comment}")
        return self._result(source, "\n".join(lines), context)

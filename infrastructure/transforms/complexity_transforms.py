# infrastructure/transforms/complexity_transforms.py
"""
Control-flow rewrites that reduce nesting and function length.

Both transforms only rewrite shapes whose behaviour is provably unchanged:
an ``if`` that closes a Void function becomes a ``guard``, and a run of
self-contained statements moves into a private helper.
"""
from typing import List, Optional, Set

from domain.errors import MultipleMatchesError, TargetNotFoundError, TransformFailedError
from domain.models.task_intent import ExtractFunction, ReduceNesting, TaskIntent
from domain.models.transform import TransformContext, TransformResult
from infrastructure.syntax.swift_tree import FunctionDecl, IfStatement, SourceTree, Statement, TokenKind
from infrastructure.transforms.syntax_transforms import SyntaxTransform

# Lines either side of the reported line that are searched for an ``if``
NESTING_LINE_TOLERANCE = 2

# Smallest run of statements worth moving into a helper
MIN_EXTRACTED_STATEMENTS = 3

_CONTROL_FLOW = frozenset({
    "if", "guard", "for", "while", "repeat", "switch", "do", "defer",
    "return", "throw", "break", "continue", "fallthrough",
    "#if", "#else", "#elseif", "#endif",
})
_DECLARATIONS = frozenset({
    "let", "var", "func", "struct", "class", "enum", "typealias", "actor",
})
_BLOCKING_KEYWORDS = frozenset({"try", "await", "return", "throw"})
_HELPER_MODIFIERS = ("static", "class", "mutating")


class GuardClauseTransform(SyntaxTransform):
    supported_intents = ("reduceNesting",)

    def apply(self, source: str, intent: TaskIntent, context: TransformContext) -> TransformResult:
        self._expect(intent, ReduceNesting)

        tree = self.syntax.parse(source)
        candidate = self._find_candidate(tree, intent.line)
        if candidate is None:
            raise TransformFailedError(
                f"No trailing if-statement near line {intent.line} can become a guard clause",
                identifier=f"{intent.file}:{intent.line}",
            )
        return self._result(source, _rewrite_as_guard(tree, candidate), context)

    def _find_candidate(self, tree: SourceTree, target_line: int) -> Optional[IfStatement]:
        best: Optional[IfStatement] = None
        for function in tree.functions:
            if not function.has_body or not function.returns_void:
                continue
            statements = tree.statements(function)
            if not statements:
                continue
            if_statement = tree.as_if_statement(statements[-1])
            if if_statement is None or if_statement.has_else:
                continue
            distance = abs(if_statement.statement.line - target_line)
            if distance > NESTING_LINE_TOLERANCE:
                continue
            if not tree.starts_line(if_statement.statement.start):
                continue
            if not tree.text[if_statement.body_open + 1:if_statement.body_close].strip():
                continue
            if best is None or distance < abs(best.statement.line - target_line):
                best = if_statement
        return best


def _rewrite_as_guard(tree: SourceTree, candidate: IfStatement) -> str:
    text = tree.text
    line_start = tree.line_start(candidate.statement.start)
    indent = text[line_start:candidate.statement.start]
    condition = text[candidate.condition_start:candidate.condition_end].strip()

    lines = text[candidate.body_open + 1:candidate.body_close].splitlines()
    if lines and not lines[0].strip():
        lines = lines[1:]
    if lines and not lines[-1].strip():
        lines = lines[:-1]

    # Nested lines lose one indentation level
    first = next((line for line in lines if line.strip()), "")
    nested_indent = first[:len(first) - len(first.lstrip())]
    if not nested_indent.startswith(indent) or nested_indent == indent:
        nested_indent = None

    body: List[str] = []
    for line in lines:
        if not line.strip():
            body.append("")
        elif nested_indent and line.startswith(nested_indent):
            body.append(indent + line[len(nested_indent):])
        else:
            body.append(indent + line.strip())

    replacement = f"{indent}guard {condition} else {{ return }}"
    replacement += "".join("\n" + line for line in body)
    return text[:line_start] + replacement + text[candidate.body_close + 1:]


class ExtractFunctionTransform(SyntaxTransform):
    supported_intents = ("extractFunction",)

    def apply(self, source: str, intent: TaskIntent, context: TransformContext) -> TransformResult:
        self._expect(intent, ExtractFunction)

        tree = self.syntax.parse(source)
        matches = [function for function in tree.functions if function.name == intent.function]
        if not matches:
            raise TargetNotFoundError(intent.function, f"Function '{intent.function}' not found")
        if len(matches) > 1:
            raise MultipleMatchesError(intent.function, len(matches))

        function = matches[0]
        if not function.has_body:
            raise TransformFailedError(f"Function '{function.name}' has no body", identifier=function.name)

        helper = f"{function.name}Helper"
        if any(other.name == helper for other in tree.functions):
            raise TransformFailedError(f"A function named '{helper}' already exists", identifier=helper)

        run = _longest_extractable_run(tree, function)
        if len(run) < MIN_EXTRACTED_STATEMENTS:
            raise TransformFailedError(
                f"No block of {MIN_EXTRACTED_STATEMENTS} or more self-contained statements in '{function.name}'",
                identifier=function.name,
            )
        return self._result(source, _extract(tree, function, run, helper), context)


def _referenced_names(tree: SourceTree, statement: Statement) -> Set[str]:
    """Identifiers used by a statement, excluding member names after a dot"""
    names: Set[str] = set()
    previous = None
    for token in tree.statement_tokens(statement):
        if token.kind == TokenKind.IDENTIFIER and (previous is None or not previous.text.endswith(".")):
            names.add(token.text.strip("`"))
        previous = token
    return names


def _is_extractable(tree: SourceTree, statement: Statement, blocked_names: Set[str]) -> bool:
    if statement.keyword in _CONTROL_FLOW or statement.keyword in _DECLARATIONS:
        return False
    if not tree.starts_line(statement.start) or not tree.ends_line(statement.end):
        return False
    names = _referenced_names(tree, statement)
    return not (names & _BLOCKING_KEYWORDS) and not (names & blocked_names)


def _bound_names(tree: SourceTree, statement: Statement) -> Set[str]:
    """Names a statement binds into the enclosing function scope"""
    tokens = tree.statement_tokens(statement)
    names: Set[str] = set()
    for position, token in enumerate(tokens[:-1]):
        if token.text not in ("let", "var", "func", "for"):
            continue
        following = tokens[position + 1]
        if following.text == "(":
            # Tuple pattern binds every identifier up to the closing paren
            for part in tokens[position + 2:]:
                if part.text == ")":
                    break
                if part.kind == TokenKind.IDENTIFIER:
                    names.add(part.text.strip("`"))
        elif following.kind == TokenKind.IDENTIFIER:
            names.add(following.text.strip("`"))
    return names


def _longest_extractable_run(tree: SourceTree, function: FunctionDecl) -> List[Statement]:
    blocked = set(function.parameters)
    best: List[Statement] = []
    current: List[Statement] = []

    for statement in tree.statements(function):
        if _is_extractable(tree, statement, blocked):
            current.append(statement)
            continue
        if len(current) > len(best):
            best = current
        current = []
        blocked |= _bound_names(tree, statement)

    if len(current) > len(best):
        best = current
    return best


def _extract(tree: SourceTree, function: FunctionDecl, run: List[Statement], helper: str) -> str:
    text = tree.text
    block_start = tree.line_start(run[0].start)
    block_end = tree.line_end(run[-1].end)
    indent = text[block_start:run[0].start]
    block = text[block_start:block_end]

    function_indent = tree.indentation(function.keyword_start)
    modifiers = " ".join(m for m in function.modifiers if m in _HELPER_MODIFIERS)
    signature = f"private {modifiers} func {helper}()" if modifiers else f"private func {helper}()"
    helper_decl = f"\n\n{function_indent}{signature} {{\n{block}\n{function_indent}}}"

    return (
        text[:block_start]
        + f"{indent}{helper}()"
        + text[block_end:function.end]
        + helper_decl
        + text[function.end:]
    )



"""AST-walking pretty-printer for Whiley source code.

Walks a parsed :class:`~wyparse.ast_nodes.Module` and emits canonical
source text: four-space indentation, one statement per line and only the
parentheses needed for the text to parse back to the same tree.

Comments are not part of the AST and are not preserved.
"""

from __future__ import annotations

from wyparse.ast_nodes import (
    ArrayAccess,
    ArrayGenerator,
    ArrayInitialiser,
    ArrayLength,
    ArrayType,
    Assert,
    Assign,
    Assume,
    BinaryExpr,
    Block,
    BoolLit,
    Break,
    ByteLit,
    Case,
    Cast,
    CharLit,
    ConstantDecl,
    Continue,
    Debug,
    Dereference,
    DoWhile,
    Expr,
    Fail,
    FunctionDecl,
    FunctionType,
    IfElse,
    ImportDecl,
    IndirectInvoke,
    IntersectionType,
    IntLit,
    Invoke,
    Is,
    LambdaConstant,
    LambdaInitialiser,
    ListType,
    MethodDecl,
    MethodType,
    Module,
    NamedBlock,
    NegationType,
    New,
    NominalType,
    NullLit,
    PrimitiveType,
    PropertyDecl,
    Quantifier,
    RecordAccess,
    RecordInitialiser,
    RecordType,
    ReferenceType,
    Return,
    Skip,
    StaticVariableAccess,
    Stmt,
    StringLit,
    Switch,
    Type,
    TypeDecl,
    UnaryExpr,
    UnionType,
    Variable,
    VariableAccess,
    While,
)
from wyparse.classify import must_parse_as_type
from wyparse.lexer import Lexer
from wyparse.tokens import TERM_START

# Operator precedence table (higher binds tighter)
_PRECEDENCE: dict[str, int] = {
    "==>": 1, "<==>": 1,
    "&&": 2, "||": 2,
    "|": 3,
    "^": 4,
    "&": 5,
    "==": 6, "!=": 6, "<": 6, "<=": 6, ">": 6, ">=": 6,
    "⊂": 6, "⊆": 6, "⊃": 6, "⊇": 6,
    "<<": 7, ">>": 7,
    "+": 8, "-": 8,
    "*": 9, "/": 9, "%": 9,
}

_CONDITION = 6
_ACCESS = 10
_TERM = 11

# Levels whose operators group to the right; the condition level does not
# group at all and everything above it groups to the left.
_RIGHT_ASSOC = frozenset({1, 2, 3, 4, 5})

# Prefix forms whose operand runs on past the operators that follow them,
# keyed by the lowest operator level they swallow.
_REACH: dict[str, int] = {"!": _CONDITION, "-": _ACCESS, "~": 1}

_ESCAPES: dict[str, str] = {
    "\b": "\\b", "\t": "\\t", "\n": "\\n", "\f": "\\f", "\r": "\\r",
    "\\": "\\\\",
}


class WhileyFormatter:
    """Format a parsed Whiley Module back to canonical source text."""

    # ── Public API ─────────────────────────────────────────────

    def format(self, module: Module) -> str:
        """Format a module to canonical source text."""
        parts: list[str] = []
        if module.package:
            parts.append(f"package {'.'.join(module.package)}")
        previous: object = None
        for decl in module.declarations:
            # imports stay together, everything else is separated
            if parts and not (isinstance(decl, ImportDecl) and isinstance(previous, ImportDecl)):
                parts.append("")
            parts.append(self._format_declaration(decl))
            previous = decl
        result = "\n".join(parts)
        if not result.endswith("\n"):
            result += "\n"
        return result

    # ── Declaration dispatch ───────────────────────────────────

    def _format_declaration(self, decl: object) -> str:
        if isinstance(decl, ImportDecl):
            return "import " + "::".join(c.text for c in decl.path)
        if isinstance(decl, TypeDecl):
            return self._format_type_decl(decl)
        if isinstance(decl, ConstantDecl):
            return (
                f"{self._modifiers(decl.modifiers)}constant {decl.name} is "
                f"{self._format_expr(decl.value)}"
            )
        if isinstance(decl, (FunctionDecl, MethodDecl)):
            return self._format_function_or_method(decl)
        if isinstance(decl, PropertyDecl):
            params = self._format_parameters(decl.parameters)
            return (
                f"{self._modifiers(decl.modifiers)}property {decl.name}({params})"
                f"{self._format_where(decl.invariant)}"
            )
        return ""

    @staticmethod
    def _modifiers(modifiers: tuple[str, ...]) -> str:
        return "".join(f"{m} " for m in modifiers)

    def _format_type_decl(self, td: TypeDecl) -> str:
        var = td.variable
        if var.name.text == "$":
            body = self._format_type(var.type)
        else:
            body = f"({self._format_type(var.type)} {var.name})"
        return (
            f"{self._modifiers(td.modifiers)}type {td.name} is {body}"
            f"{self._format_where(td.invariant)}"
        )

    def _format_function_or_method(self, fd: FunctionDecl | MethodDecl) -> str:
        if isinstance(fd, MethodDecl):
            keyword = "method"
            if fd.lifetimes:
                keyword += "<" + ", ".join(str(lt) for lt in fd.lifetimes) + ">"
        else:
            keyword = "function"
        sig = (
            f"{self._modifiers(fd.modifiers)}{keyword} {fd.name}"
            f"({self._format_parameters(fd.parameters)})"
        )
        if fd.returns:
            sig += f" -> {self._format_returns(fd.returns)}"

        lines = [sig]
        for expr in fd.requires:
            lines.append(f"requires {self._format_expr(expr)}")
        for expr in fd.ensures:
            lines.append(f"ensures {self._format_expr(expr)}")
        lines[-1] += ":"
        lines.extend(self._format_block(fd.body, 1))
        return "\n".join(lines)

    def _format_returns(self, returns: tuple[Variable, ...]) -> str:
        if len(returns) == 1 and returns[0].name.text == "$":
            return self._format_type(returns[0].type)
        return f"({self._format_parameters(returns)})"

    def _format_parameters(self, params: tuple[Variable, ...]) -> str:
        return ", ".join(f"{self._format_type(p.type)} {p.name}" for p in params)

    def _format_where(self, clauses: tuple[Expr, ...]) -> str:
        return "".join(f" where {self._format_expr(e)}" for e in clauses)

    # ── Statements ─────────────────────────────────────────────

    def _format_block(self, block: Block, level: int) -> list[str]:
        lines: list[str] = []
        for stmt in block.statements:
            lines.append(self._indent(self._format_stmt(stmt), level))
        return lines

    def _format_stmt(self, stmt: Stmt) -> str:
        if isinstance(stmt, Variable):
            text = f"{self._format_type(stmt.type)} {stmt.name}"
            if stmt.initialiser is not None:
                text += f" = {self._format_expr(stmt.initialiser)}"
            return text
        if isinstance(stmt, Assign):
            lvals = ", ".join(self._format_expr(lv) for lv in stmt.lvals)
            rvals = ", ".join(self._format_expr(rv) for rv in stmt.rvals)
            return f"{lvals} = {rvals}"
        if isinstance(stmt, Assert):
            return f"assert {self._format_expr(stmt.condition)}"
        if isinstance(stmt, Assume):
            return f"assume {self._format_expr(stmt.condition)}"
        if isinstance(stmt, Debug):
            return f"debug {self._format_expr(stmt.operand)}"
        if isinstance(stmt, Break):
            return "break"
        if isinstance(stmt, Continue):
            return "continue"
        if isinstance(stmt, Fail):
            return "fail"
        if isinstance(stmt, Skip):
            return "skip"
        if isinstance(stmt, Return):
            if not stmt.values:
                return "return"
            return "return " + ", ".join(self._format_expr(v) for v in stmt.values)
        if isinstance(stmt, IfElse):
            return self._format_if(stmt)
        if isinstance(stmt, While):
            lines = [
                f"while {self._format_expr(stmt.condition)}"
                f"{self._format_where(stmt.invariants)}:"
            ]
            lines.extend(self._format_block(stmt.body, 1))
            return "\n".join(lines)
        if isinstance(stmt, DoWhile):
            lines = ["do:"]
            lines.extend(self._format_block(stmt.body, 1))
            lines.append(
                f"while {self._format_expr(stmt.condition)}"
                f"{self._format_where(stmt.invariants)}"
            )
            return "\n".join(lines)
        if isinstance(stmt, Switch):
            lines = [f"switch {self._format_expr(stmt.condition)}:"]
            for case in stmt.cases:
                lines.append(self._indent(self._format_case(case), 1))
            return "\n".join(lines)
        if isinstance(stmt, NamedBlock):
            lines = [f"{stmt.name}:"]
            lines.extend(self._format_block(stmt.body, 1))
            return "\n".join(lines)
        if isinstance(stmt, (Invoke, IndirectInvoke)):
            return self._format_expr(stmt)
        return ""

    def _format_if(self, stmt: IfElse) -> str:
        lines = [f"if {self._format_expr(stmt.condition)}:"]
        lines.extend(self._format_block(stmt.true_branch, 1))
        branch = stmt.false_branch
        if branch is not None:
            if len(branch.statements) == 1 and isinstance(branch.statements[0], IfElse):
                lines.append("else " + self._format_if(branch.statements[0]))
            else:
                lines.append("else:")
                lines.extend(self._format_block(branch, 1))
        return "\n".join(lines)

    def _format_case(self, case: Case) -> str:
        if case.is_default:
            head = "default:"
        else:
            head = "case " + ", ".join(self._format_expr(c) for c in case.conditions) + ":"
        return "\n".join([head, *self._format_block(case.body, 1)])

    # ── Expressions ────────────────────────────────────────────

    def _format_expr(
        self, expr: Expr, parent_prec: int = 0, follow: int | None = None,
    ) -> str:
        """Format ``expr`` where it must bind at least as tight as ``parent_prec``.

        ``follow`` is the level of the operator written straight after the
        expression, if any; prefix forms that would swallow it are wrapped.
        """
        prec = self._precedence(expr)
        reach = self._reach(expr)
        if prec < parent_prec or (follow is not None and reach is not None and follow >= reach):
            return f"({self._format_expr(expr)})"
        return self._format_bare(expr, follow)

    @staticmethod
    def _precedence(expr: Expr) -> int:
        if isinstance(expr, BinaryExpr):
            return _PRECEDENCE[expr.op]
        if isinstance(expr, (Is, Quantifier)):
            return _CONDITION
        if isinstance(expr, (RecordAccess, ArrayAccess, IndirectInvoke)):
            return _ACCESS
        return _TERM

    @staticmethod
    def _reach(expr: Expr) -> int | None:
        if isinstance(expr, UnaryExpr):
            return _REACH[expr.op]
        if isinstance(expr, (Cast, New)):
            return 1
        if isinstance(expr, Is):
            # the type after "is" takes in | and &
            return 3
        return None

    def _format_bare(self, expr: Expr, follow: int | None) -> str:
        if isinstance(expr, NullLit):
            return "null"
        if isinstance(expr, BoolLit):
            return "true" if expr.value else "false"
        if isinstance(expr, ByteLit):
            return f"{expr.value:08b}b"
        if isinstance(expr, CharLit):
            return self._format_char(expr.value)
        if isinstance(expr, IntLit):
            return str(expr.value)
        if isinstance(expr, StringLit):
            return self._format_string(expr.value)
        if isinstance(expr, VariableAccess):
            return expr.name.text
        if isinstance(expr, StaticVariableAccess):
            return str(expr.name)
        if isinstance(expr, RecordAccess):
            return self._format_record_access(expr)
        if isinstance(expr, Dereference):
            return "*" + self._format_expr(expr.operand, _TERM)
        if isinstance(expr, ArrayAccess):
            source = self._format_expr(expr.source, _ACCESS, _ACCESS)
            return f"{source}[{self._format_expr(expr.index, 8)}]"
        if isinstance(expr, ArrayLength):
            return f"|{self._format_expr(expr.operand, 7, 3)}|"
        if isinstance(expr, ArrayInitialiser):
            return "[" + ", ".join(self._format_expr(e) for e in expr.elements) + "]"
        if isinstance(expr, ArrayGenerator):
            return f"[{self._format_expr(expr.element)}; {self._format_expr(expr.length)}]"
        if isinstance(expr, RecordInitialiser):
            fields = ", ".join(f"{name}: {self._format_expr(e)}" for name, e in expr.fields)
            prefix = expr.name.text if expr.name is not None else ""
            return f"{prefix}{{{fields}}}"
        if isinstance(expr, BinaryExpr):
            return self._format_binary(expr, follow)
        if isinstance(expr, UnaryExpr):
            if expr.op == "!":
                return "!" + self._format_expr(expr.operand, _CONDITION, follow)
            if expr.op == "-":
                return "-" + self._format_expr(expr.operand, _ACCESS, follow)
            return "~" + self._format_expr(expr.operand, 0, follow)
        if isinstance(expr, Is):
            operand = self._format_expr(expr.operand, 7, _CONDITION)
            return f"{operand} is {self._format_type(expr.type)}"
        if isinstance(expr, Cast):
            return self._format_cast(expr, follow)
        if isinstance(expr, Invoke):
            return f"{expr.name}{self._lifetimes(expr.lifetimes)}({self._arguments(expr.arguments)})"
        if isinstance(expr, IndirectInvoke):
            return (
                f"{self._format_expr(expr.source, _ACCESS, _ACCESS)}"
                f"{self._lifetimes(expr.lifetimes)}({self._arguments(expr.arguments)})"
            )
        if isinstance(expr, Quantifier):
            return self._format_quantifier(expr)
        if isinstance(expr, New):
            operand = self._format_expr(expr.operand, 0, follow)
            if expr.lifetime.text == "*":
                return f"new {operand}"
            return f"{expr.lifetime}:new {operand}"
        if isinstance(expr, LambdaInitialiser):
            return self._format_lambda(expr)
        if isinstance(expr, LambdaConstant):
            text = f"&{expr.name}"
            if expr.parameter_types:
                text += "(" + ", ".join(self._format_type(t) for t in expr.parameter_types) + ")"
            return text
        return ""

    def _format_binary(self, expr: BinaryExpr, follow: int | None) -> str:
        prec = _PRECEDENCE[expr.op]
        if prec in _RIGHT_ASSOC:
            left_prec, right_prec = prec + 1, prec
        elif prec == _CONDITION:
            left_prec = right_prec = prec + 1
        else:
            left_prec, right_prec = prec, prec + 1
        left = self._format_expr(expr.left, left_prec, prec)
        right = self._format_expr(expr.right, right_prec, follow)
        return f"{left} {expr.op} {right}"

    def _format_record_access(self, expr: RecordAccess) -> str:
        source = expr.source
        if isinstance(source, VariableAccess) and source.name.text == "$":
            # field alias inside a type invariant
            return expr.field.text
        if isinstance(source, Dereference):
            return f"{self._format_expr(source.operand, _ACCESS, _ACCESS)}->{expr.field}"
        return f"{self._format_expr(source, _ACCESS, _ACCESS)}.{expr.field}"

    def _format_cast(self, expr: Cast, follow: int | None) -> str:
        operand = self._format_expr(expr.operand, 0, follow)
        if not must_parse_as_type(expr.type) and not self._starts_term(operand):
            # "(T) -x" would read as a subtraction
            operand = f"({operand})"
        return f"({self._format_type(expr.type)}) {operand}"

    @staticmethod
    def _starts_term(text: str) -> bool:
        tokens = Lexer(text).lex()
        return bool(tokens) and tokens[0].kind in TERM_START

    def _format_quantifier(self, expr: Quantifier) -> str:
        ranges = ", ".join(
            f"{r.name} in {self._format_expr(r.start, 8)}..{self._format_expr(r.end, 8, 3)}"
            for r in expr.ranges
        )
        return f"{expr.kind} {{ {ranges} | {self._format_expr(expr.condition)} }}"

    def _format_lambda(self, expr: LambdaInitialiser) -> str:
        text = "&"
        if expr.captures:
            text += "[" + ", ".join(str(c) for c in expr.captures) + "]"
        if expr.lifetimes:
            text += "<" + ", ".join(str(lt) for lt in expr.lifetimes) + ">"
        params = self._format_parameters(expr.parameters)
        if params:
            params += " "
        return f"{text}({params}-> {self._format_expr(expr.body)})"

    def _arguments(self, args: tuple[Expr, ...]) -> str:
        return ", ".join(self._format_expr(a) for a in args)

    @staticmethod
    def _lifetimes(lifetimes: tuple | None) -> str:
        if not lifetimes:
            return ""
        return "<" + ", ".join(str(lt) for lt in lifetimes) + ">"

    @staticmethod
    def _format_char(value: int) -> str:
        ch = chr(value)
        if ch in _ESCAPES:
            return f"'{_ESCAPES[ch]}'"
        if ch == "'":
            return "'\\''"
        return f"'{ch}'"

    @staticmethod
    def _format_string(value: bytes) -> str:
        out: list[str] = []
        for ch in value.decode("utf-8"):
            if ch in _ESCAPES:
                out.append(_ESCAPES[ch])
            elif ch == '"':
                out.append('\\"')
            elif ord(ch) < 0x20:
                out.append(f"\\u{ord(ch):04x}")
            else:
                out.append(ch)
        return '"' + "".join(out) + '"'

    # ── Types ──────────────────────────────────────────────────

    def _format_type(self, t: Type, parent_prec: int = 0, followed: bool = False) -> str:
        """Format a type; union is 0, intersection 1, prefix forms 2, the rest 3.

        Function and method types end in a return type that would take in
        anything written after them, so they are wrapped when ``followed``.
        """
        if isinstance(t, UnionType):
            prec = 0
        elif isinstance(t, IntersectionType):
            prec = 1
        elif isinstance(t, (NegationType, ReferenceType, FunctionType, MethodType)):
            prec = 2
        else:
            prec = 3
        if prec < parent_prec or (followed and isinstance(t, (FunctionType, MethodType))):
            return f"({self._format_type(t)})"

        if isinstance(t, PrimitiveType):
            return t.name
        if isinstance(t, NominalType):
            return str(t.name)
        if isinstance(t, ArrayType):
            return self._format_type(t.element, 3, True) + "[]"
        if isinstance(t, ListType):
            return f"[{self._format_type(t.element)}]"
        if isinstance(t, RecordType):
            fields = [f"{self._format_type(f.type)} {f.name}" for f in t.fields]
            if t.is_open:
                fields.append("...")
            return "{" + ", ".join(fields) + "}"
        if isinstance(t, NegationType):
            return "!" + self._format_type(t.element, 2, followed)
        if isinstance(t, ReferenceType):
            prefix = "&" if t.lifetime is None else f"&{t.lifetime}:"
            return prefix + self._format_type(t.element, 2, followed)
        if isinstance(t, (UnionType, IntersectionType)):
            sep = " | " if isinstance(t, UnionType) else " & "
            last = len(t.operands) - 1
            return sep.join(
                self._format_type(op, prec + 1, followed or i < last)
                for i, op in enumerate(t.operands)
            )
        if isinstance(t, FunctionType):
            return f"function({self._type_list(t.parameters)})->({self._type_list(t.returns)})"
        if isinstance(t, MethodType):
            text = "method"
            if t.captures:
                text += "[" + ", ".join(str(c) for c in t.captures) + "]"
            if t.lifetimes:
                text += "<" + ", ".join(str(lt) for lt in t.lifetimes) + ">"
            text += f"({self._type_list(t.parameters)})"
            if t.returns:
                text += f"->({self._type_list(t.returns)})"
            return text
        return ""

    def _type_list(self, types: tuple[Type, ...]) -> str:
        return ", ".join(self._format_type(t) for t in types)

    # ── Helpers ────────────────────────────────────────────────

    @staticmethod
    def _indent(text: str, levels: int) -> str:
        prefix = "    " * levels
        return "\n".join(prefix + line if line else line for line in text.splitlines())

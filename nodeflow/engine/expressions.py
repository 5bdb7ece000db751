from __future__ import annotations

"""Restricted evaluation of user-authored conditions and code bodies."""

import ast
import asyncio
import builtins
import json
import logging
import operator
import sys
import time
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Dict

from RestrictedPython import compile_restricted_eval, compile_restricted_function
from RestrictedPython.Eval import default_guarded_getitem, default_guarded_getiter
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safe_builtins,
    safer_getattr,
)

from .exceptions import EvaluationError

logger = logging.getLogger(__name__)

SAFE_BUILTINS: Dict[str, Any] = dict(safe_builtins)
SAFE_BUILTINS.update(
    {
        name: getattr(builtins, name)
        for name in (
            "abs",
            "all",
            "any",
            "bool",
            "dict",
            "enumerate",
            "float",
            "int",
            "isinstance",
            "len",
            "list",
            "max",
            "min",
            "range",
            "round",
            "set",
            "sorted",
            "str",
            "sum",
            "tuple",
            "zip",
            "Exception",
            "KeyError",
            "TypeError",
            "ValueError",
        )
    }
)

# str.format can walk attributes from inside a format string; the rest expose frames
BLOCKED_ATTRIBUTES = frozenset(
    {
        "format",
        "format_map",
        "ag_code",
        "ag_frame",
        "co_code",
        "cr_await",
        "cr_code",
        "cr_frame",
        "f_back",
        "f_builtins",
        "f_code",
        "f_globals",
        "f_locals",
        "f_trace",
        "gi_code",
        "gi_frame",
        "gi_yieldfrom",
        "tb_frame",
        "tb_next",
    }
)

_CODE_FUNCTION = "node_code"

_INPLACE_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "+=": operator.iadd,
    "-=": operator.isub,
    "*=": operator.imul,
    "/=": operator.itruediv,
    "//=": operator.ifloordiv,
    "%=": operator.imod,
    "**=": operator.ipow,
    "|=": operator.ior,
    "&=": operator.iand,
    "^=": operator.ixor,
}

_MISSING = object()


class UnsafeExpressionError(ValueError):
    pass


class EvaluationTimeout(BaseException):
    """Raised from the trace hook; not an Exception so user code cannot swallow it."""


class AttrView(Mapping):
    """Read-only view over a mapping that also allows ``view.key`` access."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping) -> None:
        object.__setattr__(self, "_data", data)

    def __getitem__(self, key: Any) -> Any:
        return wrap(self._data[key])

    def __getattr__(self, name: str) -> Any:
        try:
            return wrap(self._data[name])
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise TypeError("bindings are read-only")

    def __iter__(self):
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return repr(to_plain(self))


class ListView(Sequence):
    """Read-only view over a list whose items are wrapped on access."""

    __slots__ = ("_data",)

    def __init__(self, data: Sequence) -> None:
        object.__setattr__(self, "_data", data)

    def __getitem__(self, index: Any) -> Any:
        if isinstance(index, slice):
            return ListView(self._data[index])
        return wrap(self._data[index])

    def __setattr__(self, name: str, value: Any) -> None:
        raise TypeError("bindings are read-only")

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (ListView, list, tuple)):
            return list(self) == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return repr(to_plain(self))


def wrap(value: Any) -> Any:
    if isinstance(value, (AttrView, ListView)):
        return value
    if isinstance(value, Mapping):
        return AttrView(value)
    if isinstance(value, (list, tuple)):
        return ListView(value)
    return value


def to_plain(value: Any) -> Any:
    """Unwrap binding views and containers into plain dicts and lists."""
    if isinstance(value, (AttrView, ListView)):
        return to_plain(value._data)
    if isinstance(value, Mapping):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value



def _validate(tree: ast.AST) -> None:
    for node in ast.walk(tree):
        if isinstance(
            node,
            (
                ast.Import,
                ast.ImportFrom,
                ast.Global,
                ast.Nonlocal,
                ast.ClassDef,
                ast.AsyncFunctionDef,
                ast.Await,
                ast.Yield,
                ast.YieldFrom,
            ),
        ):
            raise UnsafeExpressionError(f"'{type(node).__name__}' is not allowed")
        if isinstance(node, ast.Name) and node.id.startswith("__"):
            raise UnsafeExpressionError(f"name '{node.id}' is not allowed")
        if isinstance(node, ast.Attribute) and (
            node.attr.startswith("_") or node.attr in BLOCKED_ATTRIBUTES
        ):
            raise UnsafeExpressionError(f"attribute '{node.attr}' is not allowed")
        if isinstance(node, (ast.FunctionDef, ast.arg, ast.keyword)):
            identifier = getattr(node, "name", None) or getattr(node, "arg", None) or ""
            if identifier.startswith("__"):
                raise UnsafeExpressionError(f"name '{identifier}' is not allowed")
        if isinstance(node, ast.ExceptHandler) and node.type is None:
            raise UnsafeExpressionError("bare 'except' is not allowed")


def _guarded_getattr(obj: Any, name: str, default: Any = _MISSING) -> Any:
    if name in BLOCKED_ATTRIBUTES:
        raise AttributeError(f"attribute '{name}' is not allowed")
    value = safer_getattr(obj, name, _MISSING)
    if value is _MISSING:
        if default is _MISSING:
            raise AttributeError(name)
        return default
    return value


def _inplacevar(op: str, target: Any, value: Any) -> Any:
    try:
        func = _INPLACE_OPERATORS[op]
    except KeyError:
        raise TypeError(f"operator '{op}' is not supported") from None
    return func(target, value)


def _apply(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    return func(*args, **kwargs)


def _restricted_globals(**bindings: Any) -> Dict[str, Any]:
    """Globals for restricted bytecode: whitelisted builtins plus the guard hooks it calls."""
    scope: Dict[str, Any] = {
        "__builtins__": SAFE_BUILTINS,
        "_getattr_": _guarded_getattr,
        "_getitem_": default_guarded_getitem,
        "_getiter_": default_guarded_getiter,
        "_iter_unpack_sequence_": guarded_iter_unpack_sequence,
        "_unpack_sequence_": guarded_unpack_sequence,
        "_write_": full_write_guard,
        "_inplacevar_": _inplacevar,
        "_apply_": _apply,
    }
    scope.update(bindings)
    return scope


def _checked(result: Any) -> Any:
    if result.errors:
        raise UnsafeExpressionError("; ".join(result.errors))
    return result.code


def _run_with_budget(func: Callable[[], Any], timeout: float) -> Any:
    """Run ``func`` in the current thread, aborting once ``timeout`` seconds have passed."""
    deadline = time.monotonic() + timeout

    def tracer(frame, event, arg):
        if time.monotonic() > deadline:
            raise EvaluationTimeout()
        return tracer

    previous = sys.gettrace()
    sys.settrace(tracer)
    try:
        return func()
    finally:
        sys.settrace(previous)


def _compile_condition(expression: str):
    source = expression.strip()
    _validate(ast.parse(source, mode="eval"))
    return _checked(compile_restricted_eval(source, "<condition>"))


def _compile_code(code: str):
    _validate(ast.parse(code, mode="exec"))
    return _checked(
        compile_restricted_function(
            "input, variables", code or "pass", _CODE_FUNCTION, filename="<code>"
        )
    )


def _ensure_serializable(value: Any) -> Any:
    plain = to_plain(value)
    try:
        json.dumps(plain)
    except (TypeError, ValueError) as exc:
        raise TypeError(f"result is not JSON serializable: {exc}") from exc
    return plain


async def evaluate_condition(
    expression: str, input_value: Any, variables: Mapping, timeout: float
) -> bool:
    """Evaluate a boolean expression with ``input`` and ``variables`` bound."""

    def run() -> bool:
        code = _compile_condition(expression)
        # bindings live in globals so generator expressions can see them
        scope = _restricted_globals(input=wrap(input_value), variables=wrap(variables))
        return bool(_run_with_budget(lambda: eval(code, scope), timeout))

    try:
        return await asyncio.to_thread(run)
    except EvaluationTimeout:
        raise EvaluationError(
            f"Condition evaluation failed: timed out after {timeout:g}s"
        ) from None
    except UnsafeExpressionError as exc:
        logger.warning("Rejected unsafe condition '%s': %s", expression, exc)
        raise EvaluationError(f"Condition evaluation failed: {exc}") from exc
    except Exception as exc:
        raise EvaluationError(f"Condition evaluation failed: {exc}") from exc


async def execute_code(code: str, input_value: Any, variables: Mapping, timeout: float) -> Any:
    """
    Run ``code`` as the body of a function taking ``input`` and ``variables``.

    A ``return`` statement supplies the result; falling off the end yields None.
    The result is converted to plain JSON-compatible data.
    """

    def run() -> Any:
        compiled = _compile_code(code)
        scope = _restricted_globals()
        namespace: Dict[str, Any] = {}
        exec(compiled, scope, namespace)
        func = namespace[_CODE_FUNCTION]
        result = _run_with_budget(lambda: func(wrap(input_value), wrap(variables)), timeout)
        return _ensure_serializable(result)

    try:
        return await asyncio.to_thread(run)
    except EvaluationTimeout:
        raise EvaluationError(f"Code execution failed: timed out after {timeout:g}s") from None
    except UnsafeExpressionError as exc:
        logger.warning("Rejected unsafe code: %s", exc)
        raise EvaluationError(f"Code execution failed: {exc}") from exc
    except Exception as exc:
        raise EvaluationError(f"Code execution failed: {exc}") from exc

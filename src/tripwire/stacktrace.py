"""Stacktrace normalization.

A raw stacktrace is a list of entries, most recent call first. Each entry is
either ``(module, function, arity_or_args, location)`` or, for code that has
no module, ``(function, arity_or_args, location)``. ``arity_or_args`` is the
arity as an int or the list of argument values, and ``location`` is a
mapping with optional ``file`` and ``line`` keys.

``normalize`` turns such a list into payload frames, oldest call first.
"""

import traceback
from collections.abc import Iterable, Mapping, Sequence
from types import TracebackType
from typing import Any

from tripwire.models import Frame
from tripwire.sources import SourceCodeMap

# Bound on each argument's repr in a frame's vars
MAX_VAR_LENGTH = 513

RawFrame = tuple[Any, ...]


def arity_to_integer(arity_or_args: int | Sequence[Any]) -> int:
    if isinstance(arity_or_args, int):
        return arity_or_args
    if isinstance(arity_or_args, (list, tuple)):
        return len(arity_or_args)
    raise TypeError(f"arity must be an int or an argument list, got: {arity_or_args!r}")


def format_function(module: str | None, function: str, arity_or_args: int | Sequence[Any]) -> str:
    """Format ``module.function/arity``, or ``function/arity`` without a module."""
    arity = arity_to_integer(arity_or_args)
    if module is None:
        return f"{function}/{arity}"
    return f"{module}.{function}/{arity}"


def _unpack(entry: RawFrame) -> tuple[str | None, str, Any, Mapping[str, Any]]:
    if len(entry) == 4:
        module, function, arity_or_args, location = entry
        return module, function, arity_or_args, location or {}
    if len(entry) == 3:
        function, arity_or_args, location = entry
        return None, function, arity_or_args, location or {}
    raise ValueError(f"invalid stacktrace entry: {entry!r}")


def is_in_app(module: str | None, in_app_allow_list: Iterable[str]) -> bool:
    """Whether ``module`` falls under one of the allow-listed module paths.

    Matching is per dotted segment: ``myapp`` covers ``myapp.views`` but not
    ``myapplication``.
    """
    if module is None:
        return False

    split_module = module.split(".")
    for allowed in in_app_allow_list:
        allowed_split = allowed.split(".")
        if split_module[: len(allowed_split)] == allowed_split:
            return True
    return False


def args_to_vars(arity_or_args: Any) -> dict[str, str]:
    """Map each captured argument to ``arg<N>`` with a bounded repr."""
    if not isinstance(arity_or_args, (list, tuple)):
        return {}
    return {f"arg{index}": _safe_repr(arg)[:MAX_VAR_LENGTH] for index, arg in enumerate(arity_or_args)}


def _safe_repr(value: Any) -> str:
    try:
        return repr(value)
    except Exception as e:
        # User __repr__ can raise anything; report it instead of the value
        return f"<unrepresentable {type(value).__name__}: {e}>"


def normalize_frame(
    entry: RawFrame,
    in_app_allow_list: Iterable[str],
    source_map: SourceCodeMap | None = None,
    context_lines: int = 3,
) -> Frame:
    module, function, arity_or_args, location = _unpack(entry)

    file = location.get("file")
    file = str(file) if file is not None else None
    line = location.get("line")

    fields: dict[str, Any] = {
        "module": module,
        "function": format_function(module, function, arity_or_args),
        "filename": file,
        "lineno": line,
        "in_app": is_in_app(module, in_app_allow_list),
        "vars": args_to_vars(arity_or_args),
    }

    if source_map is not None and file is not None and line is not None:
        pre, context, post = source_map.get_source_context(file, line, context_lines)
        fields.update(pre_context=pre, context_line=context, post_context=post)

    return Frame(**fields)


def normalize(
    raw_frames: Iterable[RawFrame],
    in_app_allow_list: Iterable[str],
    source_map: SourceCodeMap | None = None,
    context_lines: int = 3,
) -> list[Frame]:
    """Normalize a raw stacktrace (most recent first) into frames (oldest first).

    Args:
        raw_frames: Raw entries, most recent call first
        in_app_allow_list: Dotted module paths that count as application code
        source_map: Map for surrounding source lines; None disables lookup
        context_lines: Lines of context before and after the frame's line

    Returns:
        Normalized frames in payload order
    """
    allow_list = list(in_app_allow_list)
    frames = [normalize_frame(entry, allow_list, source_map, context_lines) for entry in raw_frames]
    frames.reverse()
    return frames


def culprit_from_stacktrace(raw_frames: Sequence[RawFrame] | None) -> str | None:
    """Describe the topmost (most recent) frame, or None for an empty stacktrace."""
    if not raw_frames:
        return None
    module, function, arity_or_args, _location = _unpack(raw_frames[0])
    return format_function(module, function, arity_or_args)


def frames_from_traceback(tb: TracebackType | None) -> list[RawFrame]:
    """Convert a Python traceback into raw entries, most recent call first.

    Argument values are read from each frame's locals, so they reflect the
    state at the time the exception propagated through the frame.
    """
    entries: list[RawFrame] = []

    for frame, lineno in traceback.walk_tb(tb):
        code = frame.f_code
        argcount = code.co_argcount + code.co_kwonlyargcount
        args = [frame.f_locals[name] for name in code.co_varnames[:argcount] if name in frame.f_locals]
        location = {"file": code.co_filename, "line": lineno}
        module = frame.f_globals.get("__name__")

        if module is None:
            entries.append((code.co_qualname, args, location))
        else:
            entries.append((module, code.co_qualname, args, location))

    entries.reverse()
    return entries

from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from extensions import RuntimeServices
from lexer import SexpError, tokenize
from parser import Call, Const, Node, SourceLocation, parse


TYPE_STR = "STR"
TYPE_INT = "INT"
TYPE_FLT = "FLT"
TYPE_BOOL = "BOOL"
TYPE_NULL = "NULL"
TYPE_LIST = "LIST"
TYPE_MAP = "MAP"


class EvalError(SexpError):
    """Raised for evaluation faults."""

    def __init__(
        self,
        message: str,
        *,
        location: Optional[SourceLocation] = None,
        rule: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.location = location
        self.rule = rule
        self.step_index: Optional[int] = None


def value_type(value: Any) -> Optional[str]:
    # bool is checked before int since it is an int subclass.
    if isinstance(value, bool):
        return TYPE_BOOL
    if value is None:
        return TYPE_NULL
    if isinstance(value, str):
        return TYPE_STR
    if isinstance(value, int):
        return TYPE_INT
    if isinstance(value, float):
        return TYPE_FLT
    if isinstance(value, list):
        return TYPE_LIST
    if isinstance(value, dict):
        return TYPE_MAP
    return None


def ensure_value(value: Any, rule: Optional[str] = None, location: Optional[SourceLocation] = None) -> Any:
    """Reject anything outside the closed value set, containers included."""
    kind = value_type(value)
    if kind is None:
        raise EvalError(
            f"Unsupported value of type {type(value).__name__}",
            location=location,
            rule=rule,
        )
    if kind == TYPE_LIST:
        for item in value:
            ensure_value(item, rule, location)
    elif kind == TYPE_MAP:
        for key, item in value.items():
            if not isinstance(key, str):
                raise EvalError(f"Map keys must be strings, got {type(key).__name__}", location=location, rule=rule)
            ensure_value(item, rule, location)
    return value


def to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), allow_nan=False)


def render_value(value: Any) -> str:
    kind = value_type(value)
    if kind == TYPE_BOOL:
        return "true" if value else "false"
    if kind == TYPE_NULL:
        return "null"
    if kind in (TYPE_LIST, TYPE_MAP):
        return to_json(value)
    if kind == TYPE_FLT:
        return repr(value)
    return str(value)


@dataclass(frozen=True)
class ExecutionContext:
    arguments: Tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", tuple(self.arguments))

    def get_argument(self, index: int) -> Any:
        if index < 0 or index >= len(self.arguments):
            raise EvalError(f"Argument {index} is not provided")
        return self.arguments[index]

    def __len__(self) -> int:
        return len(self.arguments)


Handler = Callable[[List[Any], ExecutionContext], Any]


class FunctionRegistry:
    def __init__(self) -> None:
        self._functions: Dict[str, Handler] = {}

    def register(self, name: str, handler: Handler) -> None:
        if not name:
            raise EvalError("Function name must be non-empty")
        if not callable(handler):
            raise EvalError(f"Handler for '{name}' is not callable")
        self._functions[self._normalize(name)] = handler

    def has(self, name: str) -> bool:
        return self._normalize(name) in self._functions

    def names(self) -> List[str]:
        return sorted(self._functions)

    def call(self, name: str, arguments: List[Any], context: ExecutionContext) -> Any:
        handler = self._functions.get(self._normalize(name))
        if handler is None:
            raise EvalError(f"Function '{name}' is not defined", rule=name)
        return handler(arguments, context)

    def _normalize(self, name: str) -> str:
        return name.lower()


@dataclass
class Frame:
    name: str
    location: SourceLocation
    frame_id: str
    depth: int
    arguments: Optional[List[Any]] = None


@dataclass
class StepEntry:
    step_index: int
    state_id: str
    frame_id: str
    name: str
    location: SourceLocation
    depth: int
    arguments: Optional[List[str]]


class StepLogger:
    def __init__(self, verbose: bool) -> None:
        self.verbose = verbose
        self.entries: List[StepEntry] = []
        self.frame_last_entry: Dict[str, StepEntry] = {}

    def reset(self) -> None:
        self.entries.clear()
        self.frame_last_entry.clear()

    def record(self, frame: Frame) -> StepEntry:
        step_index = len(self.entries)
        arguments = None
        if self.verbose and frame.arguments is not None:
            arguments = [render_value(arg) for arg in frame.arguments]
        entry = StepEntry(
            step_index=step_index,
            state_id=f"s_{step_index:06d}",
            frame_id=frame.frame_id,
            name=frame.name,
            location=frame.location,
            depth=frame.depth,
            arguments=arguments,
        )
        self.entries.append(entry)
        self.frame_last_entry[frame.frame_id] = entry
        return entry

    def last_entry_for_frame(self, frame_id: str) -> Optional[StepEntry]:
        return self.frame_last_entry.get(frame_id)


class Builtins:
    def __init__(self) -> None:
        self.table: Dict[str, Handler] = {
            "getArg": self._get_arg,
            "array": self._array,
            "map": self._map,
            "json": self._json,
            "concat": self._concat,
        }

    def install(self, registry: FunctionRegistry) -> None:
        # Names the host already registered are left alone.
        for name, handler in self.table.items():
            if not registry.has(name):
                registry.register(name, handler)

    # Helpers
    def _expect_arity(self, rule: str, expected: int, args: List[Any]) -> None:
        if len(args) != expected:
            raise EvalError(f"{rule} expects {expected} arguments, got {len(args)}", rule=rule)

    def _expect_int(self, value: Any, rule: str) -> int:
        if value_type(value) != TYPE_INT:
            raise EvalError(f"{rule} expects integer index", rule=rule)
        return value

    def _expect_list(self, value: Any, rule: str) -> List[Any]:
        kind = value_type(value)
        if kind == TYPE_LIST:
            return value
        if kind == TYPE_MAP:
            return list(value.values())
        raise EvalError(f"{rule} expects two array arguments", rule=rule)

    def _get_arg(self, args: List[Any], context: ExecutionContext) -> Any:
        self._expect_arity("getArg", 1, args)
        index = self._expect_int(args[0], "getArg")
        return context.get_argument(index)

    def _array(self, args: List[Any], _: ExecutionContext) -> List[Any]:
        return list(args)

    def _map(self, args: List[Any], _: ExecutionContext) -> Dict[str, Any]:
        self._expect_arity("map", 2, args)
        keys = self._expect_list(args[0], "map")
        values = self._expect_list(args[1], "map")
        if len(keys) != len(values):
            raise EvalError("map expects arrays of the same length", rule="map")
        result: Dict[str, Any] = {}
        for key, value in zip(keys, values):
            result[render_value(key)] = value
        return result

    def _json(self, args: List[Any], _: ExecutionContext) -> str:
        self._expect_arity("json", 1, args)
        try:
            return to_json(args[0])
        except (TypeError, ValueError) as exc:
            raise EvalError(f"json encoding failed: {exc}", rule="json") from exc

    def _concat(self, args: List[Any], _: ExecutionContext) -> str:
        self._expect_arity("concat", 2, args)
        return render_value(args[0]) + render_value(args[1])


class Interpreter:
    def __init__(
        self,
        registry: Optional[FunctionRegistry] = None,
        *,
        verbose: bool = False,
        services: Optional[RuntimeServices] = None,
    ) -> None:
        self.registry = registry or FunctionRegistry()
        self.verbose = verbose
        self.builtins = Builtins()
        self.builtins.install(self.registry)

        # Extension functions are host registrations, so they replace built-ins.
        if services is not None:
            for name, handler, _doc in services.functions:
                self.register_function(name, handler)

        self.logger = StepLogger(verbose=verbose)
        self.call_stack: List[Frame] = []
        self.frame_counter = 0

    def register_function(self, name: str, handler: Handler) -> None:
        self.registry.register(name, handler)

    def parse(self, source: str) -> Node:
        return parse(tokenize(source))

    def run(self, source: str, arguments: Sequence[Any] = ()) -> Any:
        program = self.parse(source)
        for index, argument in enumerate(arguments):
            try:
                ensure_value(argument)
            except EvalError as error:
                raise EvalError(f"Argument {index}: {error.message}") from error
        context = ExecutionContext(tuple(arguments))
        self.logger.reset()
        self.call_stack = []
        self.frame_counter = 0
        try:
            return self.evaluate(program, context)
        except RecursionError as exc:
            raise EvalError("Value nesting too deep") from exc

    def evaluate(self, node: Node, context: ExecutionContext) -> Any:
        if isinstance(node, Const):
            return node.value
        if isinstance(node, Call):
            return self._evaluate_call(node, context)
        raise EvalError(
            f"Unknown node type {type(node).__name__}",
            location=getattr(node, "location", None),
        )

    def _evaluate_call(self, node: Call, context: ExecutionContext) -> Any:
        frame = self._new_frame(node)
        self.call_stack.append(frame)

        args: List[Any] = []
        for argument in node.arguments:
            args.append(self.evaluate(argument, context))
        frame.arguments = args
        entry = self.logger.record(frame)

        try:
            result = self.registry.call(node.name, args, context)
            ensure_value(result, node.name, node.location)
        except EvalError as error:
            if error.location is None:
                error.location = node.location
            if error.rule is None:
                error.rule = node.name
            if error.step_index is None:
                error.step_index = entry.step_index
            raise

        # Frames stay on the stack when a call fails so the traceback can show them.
        self.call_stack.pop()
        return result

    def _new_frame(self, node: Call) -> Frame:
        self.frame_counter += 1
        return Frame(
            name=node.name,
            location=node.location,
            frame_id=f"f_{self.frame_counter:06d}",
            depth=len(self.call_stack),
        )


@dataclass
class TracebackFrame:
    name: str
    location: SourceLocation
    state_entry: Optional[StepEntry] = field(default=None)


class TracebackFormatter:
    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def build_frames(self) -> List[TracebackFrame]:
        frames: List[TracebackFrame] = []
        for frame in self.interpreter.call_stack:
            entry = self.interpreter.logger.last_entry_for_frame(frame.frame_id)
            frames.append(TracebackFrame(name=frame.name, location=frame.location, state_entry=entry))
        return frames

    def format_text(self, error: EvalError, verbose: bool) -> str:
        lines = ["Traceback (most recent call last):"]
        for frame in self.build_frames():
            lines.append(f"  line {frame.location.line}, column {frame.location.column}, in {frame.name}")
            if frame.state_entry:
                lines.append(
                    f"    State log index: {frame.state_entry.step_index}  State id: {frame.state_entry.state_id}"
                )
                if verbose and frame.state_entry.arguments is not None:
                    lines.append(f"    Arguments: {', '.join(frame.state_entry.arguments)}")
        rule = error.rule or "runtime"
        lines.append(f"{error.__class__.__name__}: {error.message} (rule: {rule})")
        return "\n".join(lines)

    def to_json(self, error: EvalError) -> str:
        frames_json: List[Dict[str, Any]] = []
        for index, frame in enumerate(self.build_frames()):
            entry: Dict[str, Any] = {
                "frame_index": index,
                "name": frame.name,
                "source_location": {"line": frame.location.line, "column": frame.location.column},
            }
            if frame.state_entry:
                entry["state_id"] = frame.state_entry.state_id
                entry["step_index"] = frame.state_entry.step_index
                if frame.state_entry.arguments is not None:
                    entry["arguments"] = frame.state_entry.arguments
            frames_json.append(entry)
        location = None
        if error.location is not None:
            location = {"line": error.location.line, "column": error.location.column}
        data = {
            "error": {
                "type": error.__class__.__name__,
                "message": error.message,
                "rule": error.rule,
                "location": location,
                "failing_step_index": error.step_index,
            },
            "traceback": frames_json,
        }
        return json.dumps(data, indent=2)

"""Platform dispatch generator for Rust.

Turns include/exclude platform directives attached to Rust declarations into
`#[cfg(...)]`-gated source: forwarding wrappers, per-platform type aliases,
trait-bound assertions and visibility-split module aliases.

Usage:
    python platgen.py --input decls.xml --output src/platform_gen.rs
    python platgen.py --resolve "include(posix), exclude(macos)"
    python platgen.py --list-platforms
"""

import argparse
import re
import sys
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    input_path: Path
    output_path: Path


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str
    options_text: str | None


VALID_ERROR_CODES = {
    "MISSING_INPUT",
    "MISSING_OUTPUT",
    "PATH_NOT_FOUND",
    "CONFLICT_GENERATE_DISCOVERY",
    "INVALID_OPTIONS",
}


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this flag.",
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate platform-gated Rust declarations"
    )

    parser.add_argument("--input", type=Path, default=None)
    parser.add_argument("--output", type=Path, default=None)

    discovery_group = parser.add_mutually_exclusive_group()
    discovery_group.add_argument(
        "--list-platforms", action="store_true", default=False
    )
    discovery_group.add_argument("--resolve", type=str, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig | DiscoveryConfig:
    has_generate_input = bool(args.input or args.output)
    has_discovery_command = bool(args.list_platforms or args.resolve is not None)

    if has_generate_input and has_discovery_command:
        raise ConfigError(
            "CONFLICT_GENERATE_DISCOVERY",
            "Generate flags cannot be combined with discovery flags.",
            "Choose either --input/--output or one of --list-platforms, --resolve.",
        )

    if args.list_platforms:
        return DiscoveryConfig(command="list-platforms", options_text=None)

    if args.resolve is not None:
        try:
            parse_options(args.resolve)
        except OptionParseError as err:
            raise ConfigError(
                "INVALID_OPTIONS",
                f"Invalid option block: {err.diagnostic.message}",
                "Use include(...) and exclude(...) with: "
                + ", ".join(PLATFORM_GROUPS)
                + ".",
            ) from err
        return DiscoveryConfig(command="resolve", options_text=args.resolve)

    if args.input is None:
        raise ConfigError(
            "MISSING_INPUT",
            "Generate mode requires --input.",
            "Pass --input /path/to/decls.xml, or use --list-platforms / --resolve.",
        )
    if args.output is None:
        raise ConfigError(
            "MISSING_OUTPUT",
            "Generate mode requires --output.",
            "Pass --output /path/to/platform_gen.rs.",
        )

    input_path = validate_path_exists(
        args.input,
        "--input",
        "Point --input at an existing declaration manifest (XML).",
    )
    return GenerateConfig(input_path=input_path, output_path=args.output)


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))


# ===--- Platform vocabulary ---=== #


@dataclass(frozen=True, order=True)
class PlatformAtom:
    """One concrete target platform.

    Ordering compares ``name`` first, so sorting atoms yields lexicographic
    order by name. Every rendered guard and alias list relies on that.

    Attributes:
        name: Keyword used in option blocks, e.g. "macos".
        target_os: Value tested by the generated `target_os = "..."` predicate.
        suffix: Human-readable suffix for struct aliases, e.g. "MacOS".
        module_name: File-backed module name used by platform modules.
    """

    name: str
    target_os: str
    suffix: str
    module_name: str


LINUX = PlatformAtom("linux", "linux", "Linux", "linux")
MACOS = PlatformAtom("macos", "macos", "MacOS", "macos")
WINDOWS = PlatformAtom("windows", "windows", "Windows", "windows")

PLATFORM_ATOMS: tuple[PlatformAtom, ...] = (LINUX, MACOS, WINDOWS)

GROUP_ALL = "all"
GROUP_POSIX = "posix"

PLATFORM_GROUPS: dict[str, tuple[PlatformAtom, ...]] = {
    LINUX.name: (LINUX,),
    MACOS.name: (MACOS,),
    WINDOWS.name: (WINDOWS,),
    GROUP_POSIX: (LINUX, MACOS),
    GROUP_ALL: PLATFORM_ATOMS,
}
"""Closed group table: every keyword accepted by include(...)/exclude(...).

Atoms expand to themselves. Composites expand to a fixed, non-empty atom
tuple already in name order."""


def expand_group(group: str) -> tuple[PlatformAtom, ...]:
    try:
        return PLATFORM_GROUPS[group]
    except KeyError:
        raise ValueError(f"Unknown platform group: {group}") from None


def expand_groups(groups) -> frozenset[PlatformAtom]:
    return frozenset(atom for group in groups for atom in expand_group(group))


# ===--- Source locations and diagnostics ---=== #


@dataclass(frozen=True)
class SourceLocation:
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"

    def advance(self, text: str, index: int) -> "SourceLocation":
        """Return the location of text[index], given text starts at self."""
        before = text[:index]
        newlines = before.count("\n")
        if newlines == 0:
            return SourceLocation(self.line, self.column + index)
        return SourceLocation(self.line + newlines, index - before.rfind("\n") - 1)


CALL_SITE = SourceLocation(0, 0)


@dataclass(frozen=True)
class Diagnostic:
    """A build-time error anchored at a source location.

    Generators return diagnostics instead of raising, so several problems in
    one declaration surface in a single pass.
    """

    message: str
    location: SourceLocation = CALL_SITE


# ===--- Option block parsing ---=== #


@dataclass(frozen=True)
class OptionBlock:
    """Parsed `include(...), exclude(...), traits(...)` directive.

    include is never empty: the parser defaults it to {"all"}.
    """

    include: frozenset[str]
    exclude: frozenset[str]
    traits: tuple[str, ...] = ()
    location: SourceLocation = CALL_SITE


class OptionParseError(Exception):
    def __init__(self, diagnostic: Diagnostic):
        super().__init__(diagnostic.message)
        self.diagnostic = diagnostic


_OPTION_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class _OptionScanner:
    def __init__(self, text: str, location: SourceLocation):
        self.text = text
        self.pos = 0
        self.location = location

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def at_end(self) -> bool:
        self.skip_ws()
        return self.pos >= len(self.text)

    def error(self, message: str, index: int | None = None) -> OptionParseError:
        at = self.pos if index is None else index
        return OptionParseError(
            Diagnostic(message, self.location.advance(self.text, at))
        )

    def peek(self, token: str) -> bool:
        self.skip_ws()
        return self.text.startswith(token, self.pos)

    def expect(self, token: str) -> None:
        if not self.peek(token):
            found = self.text[self.pos : self.pos + 1] or "end of input"
            raise self.error(f"expected `{token}`, found `{found}`")
        self.pos += len(token)

    def peek_ident(self) -> str | None:
        self.skip_ws()
        match = _OPTION_IDENT_RE.match(self.text, self.pos)
        return match.group(0) if match else None

    def take_ident(self, what: str) -> str:
        ident = self.peek_ident()
        if ident is None:
            raise self.error(f"expected {what}")
        self.pos += len(ident)
        return ident

    def skip_angle_args(self) -> None:
        start = self.pos
        depth = 0
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == "<":
                depth += 1
            elif ch == ">" and self.text[self.pos - 1] != "-":
                depth -= 1
                if depth == 0:
                    self.pos += 1
                    return
            self.pos += 1
        raise self.error("unclosed `<` in trait path", start)

    def skip_paren_args(self) -> None:
        start = self.pos
        depth = 0
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    self.pos += 1
                    return
            self.pos += 1
        raise self.error("unclosed `(` in trait path", start)

    def skip_return_type(self) -> None:
        # runs to the next top-level `,` or the `)` closing the traits list
        self.skip_ws()
        start = self.pos
        depth = 0
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch in "([<":
                depth += 1
            elif ch in ")]>" and self.text[self.pos - 1] != "-":
                if depth == 0:
                    break
                depth -= 1
            elif ch == "," and depth == 0:
                break
            self.pos += 1
        if not self.text[start : self.pos].strip():
            raise self.error("expected return type after `->`", start)


_GROUP_KEYWORD_ORDER = (GROUP_ALL, GROUP_POSIX, LINUX.name, MACOS.name, WINDOWS.name)


def _expected_groups_message() -> str:
    keywords = ", ".join(f"`{g}`" for g in _GROUP_KEYWORD_ORDER)
    return f"expected one of: {keywords}"


def _parse_group(scanner: _OptionScanner) -> str:
    scanner.skip_ws()
    start = scanner.pos
    ident = scanner.peek_ident()
    if ident is None or ident not in PLATFORM_GROUPS:
        raise scanner.error(_expected_groups_message(), start)
    scanner.pos += len(ident)
    return ident


def _parse_trait_path(scanner: _OptionScanner) -> str:
    scanner.skip_ws()
    start = scanner.pos
    if scanner.peek("::"):
        scanner.pos += 2
    while True:
        scanner.take_ident("trait path")
        if scanner.peek("<"):
            scanner.skip_angle_args()
        elif scanner.peek("("):
            # Fn(A, B) -> R sugar ends the path
            scanner.skip_paren_args()
            if scanner.peek("->"):
                scanner.pos += 2
                scanner.skip_return_type()
            break
        if scanner.peek("::"):
            scanner.pos += 2
            continue
        break
    return re.sub(r"\s+", " ", scanner.text[start : scanner.pos].strip())


def _parse_list(scanner: _OptionScanner, parse_item) -> list[str]:
    scanner.expect("(")
    items: list[str] = []
    while not scanner.peek(")"):
        items.append(parse_item(scanner))
        if scanner.peek(","):
            scanner.pos += 1
            continue
        break
    scanner.expect(")")
    return items


def parse_options(
    text: str,
    *,
    allow_traits: bool = False,
    location: SourceLocation = CALL_SITE,
) -> OptionBlock:
    """Parse an option block such as ``include(posix), exclude(macos)``.

    Entries may appear in any order and may repeat (they accumulate). Trailing
    commas are accepted. An empty include set defaults to {"all"} here, once,
    so resolve() never has to tell "no include" from "empty exclude".

    Args:
        text: Raw option text, without the surrounding attribute parentheses.
        allow_traits: Accept traits(...) entries (struct declarations only).
        location: Where the option text starts; diagnostics are offset from it.

    Returns:
        OptionBlock with include defaulted and traits in declared order.

    Raises:
        OptionParseError: On unknown keywords or malformed lists. Carries a
            single Diagnostic.
    """
    scanner = _OptionScanner(text, location)
    include: set[str] = set()
    exclude: set[str] = set()
    traits: list[str] = []

    while not scanner.at_end():
        start = scanner.pos
        keyword = scanner.peek_ident()
        if keyword == "include":
            scanner.pos += len(keyword)
            include.update(_parse_list(scanner, _parse_group))
        elif keyword == "exclude":
            scanner.pos += len(keyword)
            exclude.update(_parse_list(scanner, _parse_group))
        elif keyword == "traits" and allow_traits:
            scanner.pos += len(keyword)
            traits.extend(_parse_list(scanner, _parse_trait_path))
        else:
            expected = "`include`, `exclude`"
            expected += ", `traits`" if allow_traits else ""
            raise scanner.error(f"expected one of: {expected}", start)

        if not scanner.at_end():
            scanner.expect(",")

    if not include:
        include.add(GROUP_ALL)

    return OptionBlock(
        include=frozenset(include),
        exclude=frozenset(exclude),
        traits=tuple(traits),
        location=location,
    )


# ===--- Platform-set resolution ---=== #

EMPTY_PLATFORM_SET_MESSAGE = (
    "Configuration excludes all platforms: "
    "'include' and 'exclude' cancel each other out"
)


@dataclass(frozen=True)
class Resolution:
    """Outcome of include/exclude set algebra for one option block.

    Attributes:
        atoms: Allowed atoms in name order. May be empty.
        guard: Predicate text for `#[cfg(...)]`. `any()` when atoms is empty.
        diagnostic: Set only when atoms is empty, anchored at the option block.
    """

    atoms: tuple[PlatformAtom, ...]
    guard: str
    diagnostic: Diagnostic | None = None


def render_atom_predicate(atom: PlatformAtom) -> str:
    return f'target_os = "{atom.target_os}"'


def render_guard(atoms: tuple[PlatformAtom, ...]) -> str:
    """Render the cfg predicate for an ordered atom tuple.

    One atom renders as a bare equality test. Zero or several atoms render as
    an any(...) disjunction; any() over zero terms is never satisfied.
    """
    terms = [render_atom_predicate(atom) for atom in atoms]
    if len(terms) == 1:
        return terms[0]
    return f"any({', '.join(terms)})"


def resolve(
    include,
    exclude,
    location: SourceLocation = CALL_SITE,
) -> Resolution:
    """Compute expand(include) minus expand(exclude) and render its guard.

    The caller must already have defaulted an empty include to {"all"}.
    Duplicates are idempotent and exclude always wins over include. The atom
    order, and so the guard text, does not depend on input order.

    Args:
        include: Group keywords to allow.
        exclude: Group keywords to remove.
        location: Option block location used for the empty-set diagnostic.

    Returns:
        Resolution with a diagnostic when no platform remains.
    """
    allowed = tuple(sorted(expand_groups(include) - expand_groups(exclude)))
    diagnostic = None
    if not allowed:
        diagnostic = Diagnostic(EMPTY_PLATFORM_SET_MESSAGE, location)
    return Resolution(atoms=allowed, guard=render_guard(allowed), diagnostic=diagnostic)


def resolve_options(options: OptionBlock) -> Resolution:
    return resolve(options.include, options.exclude, options.location)


# ===--- Declarations ---=== #

GENERIC_KINDS = ("lifetime", "type", "const")
_IDENT_RE = re.compile(r"^(?:r#)?[A-Za-z_][A-Za-z0-9_]*$")


def is_identifier(text: str) -> bool:
    return text != "_" and bool(_IDENT_RE.match(text))


@dataclass(frozen=True)
class GenericParam:
    kind: str
    name: str
    bounds: tuple[str, ...] = ()
    const_type: str | None = None
    default: str | None = None

    def __post_init__(self) -> None:
        if self.kind not in GENERIC_KINDS:
            raise ValueError(f"Unknown generic parameter kind: {self.kind}")
        if self.kind == "const" and not self.const_type:
            raise ValueError(f"const generic '{self.name}' requires a const_type")


@dataclass(frozen=True)
class Generics:
    params: tuple[GenericParam, ...] = ()
    where_clause: tuple[str, ...] = ()


@dataclass(frozen=True)
class Receiver:
    """The `self` parameter: `&self`, `&mut self`, `self`, or `self: Ty`."""

    reference: bool = True
    mutable: bool = False
    lifetime: str | None = None
    ty: str | None = None


@dataclass(frozen=True)
class Param:
    """A typed parameter. pattern is the binding as written, e.g. "a" or "(x, y)"."""

    pattern: str
    ty: str
    mutable: bool = False
    by_ref: bool = False
    location: SourceLocation = CALL_SITE

    @property
    def is_simple(self) -> bool:
        return is_identifier(self.pattern)


@dataclass(frozen=True)
class Variadic:
    name: str | None = None
    location: SourceLocation = CALL_SITE

    @property
    def token(self) -> str:
        return f"{self.name}: ..." if self.name else "..."


@dataclass(frozen=True)
class FnSignature:
    name: str
    generics: Generics = field(default_factory=Generics)
    receiver: Receiver | None = None
    params: tuple[Param, ...] = ()
    variadic: Variadic | None = None
    output: str | None = None
    is_async: bool = False
    is_unsafe: bool = False
    is_const: bool = False
    abi: str | None = None


@dataclass(frozen=True)
class CallableDecl:
    """A function or method declaration.

    body is None for a signature-only declaration, which is what asks for a
    forwarding wrapper. Otherwise it holds the braced block verbatim.
    """

    sig: FnSignature
    vis: str = ""
    attrs: tuple[str, ...] = ()
    body: str | None = None
    location: SourceLocation = CALL_SITE


@dataclass(frozen=True)
class StructDecl:
    name: str
    vis: str = ""
    attrs: tuple[str, ...] = ()
    generics: Generics = field(default_factory=Generics)
    body: str = ";"
    location: SourceLocation = CALL_SITE


@dataclass(frozen=True)
class ModDecl:
    name: str
    vis: str = ""
    attrs: tuple[str, ...] = ()
    is_unsafe: bool = False
    inline_body: str | None = None
    location: SourceLocation = CALL_SITE


USE_TREE_KINDS = ("name", "path", "rename", "glob", "group")


@dataclass(frozen=True)
class UseTree:
    kind: str
    text: str
    leading_colon: bool = False


@dataclass(frozen=True)
class UseDecl:
    tree: UseTree
    vis: str = ""
    attrs: tuple[str, ...] = ()
    location: SourceLocation = CALL_SITE


def parse_use_tree(text: str) -> UseTree:
    """Classify the tree of a `use` declaration (without `use` and `;`)."""
    stripped = text.strip()
    leading_colon = stripped.startswith("::")
    body = stripped[2:].strip() if leading_colon else stripped
    if "{" in body:
        kind = "group"
    elif body.endswith("*"):
        kind = "glob"
    elif re.search(r"\bas\b", body):
        kind = "rename"
    elif "::" in body:
        kind = "path"
    elif is_identifier(body):
        kind = "name"
    else:
        raise ValueError(f"Unrecognized use tree: {text!r}")
    return UseTree(kind=kind, text=body, leading_colon=leading_colon)


# ===--- Output items ---=== #


@dataclass(frozen=True)
class ForwardCall:
    """The single call expression making up a wrapper body.

    Attributes:
        target: Path of the callee, e.g. "Self::reboot_impl".
        generic_args: Explicit turbofish arguments; empty for no list.
        args: Forwarded argument names, "self" first when there is a receiver.
        awaited: Append `.await` to the call.
        unsafe_scope: Wrap the whole call (and its `;`) in `unsafe { ... }`.
        statement: Terminate with `;` instead of leaving a tail expression.
    """

    target: str
    generic_args: tuple[str, ...] = ()
    args: tuple[str, ...] = ()
    awaited: bool = False
    unsafe_scope: bool = False
    statement: bool = False

    def render(self) -> str:
        turbofish = f"::<{', '.join(self.generic_args)}>" if self.generic_args else ""
        expr = f"{self.target}{turbofish}({', '.join(self.args)})"
        if self.awaited:
            expr += ".await"
        if self.statement:
            expr += ";"
        if self.unsafe_scope:
            expr = f"unsafe {{ {expr} }}"
        return expr


@dataclass(frozen=True)
class GuardedFn:
    """A function emitted under a guard.

    forward is set for generated wrappers. When it is None the declaration is
    emitted as written (plain conditional and trait-method modes).
    """

    guard: str
    decl: CallableDecl
    forward: ForwardCall | None = None


@dataclass(frozen=True)
class GuardedStruct:
    guard: str
    decl: StructDecl


@dataclass(frozen=True)
class TypeAlias:
    guard: str
    vis: str
    name: str
    generics: Generics
    target: str
    attrs: tuple[str, ...] = ()


@dataclass(frozen=True)
class TraitAssertion:
    guard: str
    traits: tuple[str, ...]
    check_params: tuple[str, ...]
    where_clause: tuple[str, ...]
    checked_type: str


@dataclass(frozen=True)
class PlatformModule:
    guard: str
    vis: str
    module_name: str
    attrs: tuple[str, ...] = ()


@dataclass(frozen=True)
class ModuleAlias:
    """Private `use <module> as <alias>;` re-export. Never carries visibility."""

    guard: str
    module_name: str
    alias: str
    attrs: tuple[str, ...] = ()


# ===--- Declaration transformer ---=== #

IMPL_SUFFIX = "_impl"

COMPLEX_PATTERN_MESSAGE = (
    "Complex patterns in arguments are not supported: give the argument a name"
)
VARIADIC_MESSAGE = "Variadic arguments are not permitted"


def impl_name(name: str, suffix: str = IMPL_SUFFIX) -> str:
    return f"{name}{suffix}"


def forwarded_generic_args(generics: Generics) -> tuple[str, ...]:
    """Type and const parameter names in declared order. Lifetimes are inferred."""
    return tuple(p.name for p in generics.params if p.kind != "lifetime")


def build_forward_call(sig: FnSignature) -> tuple[ForwardCall, list[Diagnostic]]:
    diagnostics: list[Diagnostic] = []
    args: list[str] = []
    if sig.receiver is not None:
        args.append("self")
    for param in sig.params:
        if not param.is_simple:
            message = f"{COMPLEX_PATTERN_MESSAGE}; found `{param.pattern}`"
            diagnostics.append(Diagnostic(message, param.location))
            continue
        # mut/ref belong to the binding, the call site only reads it
        args.append(param.pattern)

    call = ForwardCall(
        target=f"Self::{impl_name(sig.name)}",
        generic_args=forwarded_generic_args(sig.generics),
        args=tuple(args),
        awaited=sig.is_async,
        unsafe_scope=sig.is_unsafe,
        statement=sig.output is None,
    )
    return call, diagnostics


def transform(
    decl: CallableDecl, guard: str
) -> tuple[GuardedFn | None, list[Diagnostic]]:
    """Turn a callable declaration into its guarded form.

    A declaration that already has a body is emitted unchanged under the
    guard. A signature-only declaration gets a body forwarding to
    `Self::<name>_impl`. Non-simple parameter patterns are reported and left
    out of the call while the wrapper is still produced. A variadic parameter
    is reported and suppresses the wrapper.

    The guard is attached to the wrapper only; guarding the `_impl` target is
    the author's job.

    Args:
        decl: Parsed callable declaration.
        guard: Predicate text from resolve().

    Returns:
        Tuple of (GuardedFn or None, diagnostics in discovery order).
    """
    if decl.body is not None:
        return GuardedFn(guard=guard, decl=decl), []

    call, diagnostics = build_forward_call(decl.sig)
    if decl.sig.variadic is not None:
        variadic = decl.sig.variadic
        message = f"{VARIADIC_MESSAGE}; found `{variadic.token}`"
        diagnostics.append(Diagnostic(message, variadic.location))
        return None, diagnostics
    return GuardedFn(guard=guard, decl=decl, forward=call), diagnostics


def transform_trait_fn(decl: CallableDecl, guard: str) -> GuardedFn:
    return GuardedFn(guard=guard, decl=decl)


# ===--- Trait-bound assertions ---=== #


def format_generic_param(
    param: GenericParam, *, bounds: bool = True, default: bool = True
) -> str:
    if param.kind == "const":
        text = f"const {param.name}: {param.const_type}"
    else:
        text = param.name
        if bounds and param.bounds:
            text += f": {' + '.join(param.bounds)}"
    if default and param.default is not None:
        text += f" = {param.default}"
    return text


def format_generic_params(params, *, bounds: bool = True, default: bool = True) -> str:
    rendered = [format_generic_param(p, bounds=bounds, default=default) for p in params]
    return f"<{', '.join(rendered)}>" if rendered else ""


def format_where(predicates: tuple[str, ...]) -> str:
    return f" where {', '.join(predicates)}" if predicates else ""


def type_usage(name: str, generics: Generics, *, elide_lifetimes: bool) -> str:
    """Render `Name<'a, T, N>`; lifetimes become `'_` when elided."""
    args = []
    for param in generics.params:
        if param.kind == "lifetime" and elide_lifetimes:
            args.append("'_")
        else:
            args.append(param.name)
    return f"{name}<{', '.join(args)}>" if args else name


def build_trait_assertion(
    decl: StructDecl, traits: tuple[str, ...], guard: str
) -> TraitAssertion | None:
    """Build a compile-time check that decl implements every trait in traits.

    The check is a generic function carrying the declaration's own type/const
    parameters (with their bounds, without lifetimes or defaults) and where
    clause, so a generic type is checked against abstract bounds rather than
    a dummy instantiation.

    Returns None when traits is empty.
    """
    if not traits:
        return None
    check_params = tuple(
        format_generic_param(p, default=False)
        for p in decl.generics.params
        if p.kind != "lifetime"
    )
    return TraitAssertion(
        guard=guard,
        traits=tuple(traits),
        check_params=check_params,
        where_clause=decl.generics.where_clause,
        checked_type=type_usage(decl.name, decl.generics, elide_lifetimes=True),
    )


# ===--- Alias generators ---=== #

_DEPRECATED_ATTR_RE = re.compile(r"^#\[\s*deprecated\b")


def deprecation_attrs(attrs: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(attr for attr in attrs if _DEPRECATED_ATTR_RE.match(attr.strip()))


def alias_name(type_name: str, atom: PlatformAtom) -> str:
    return f"{type_name}{atom.suffix}"


def generate_struct_aliases(
    decl: StructDecl, atoms: tuple[PlatformAtom, ...]
) -> list[TypeAlias]:
    # Bounds and defaults are dropped: rustc ignores them on aliases and warns.
    alias_generics = Generics(
        params=tuple(
            GenericParam(kind=p.kind, name=p.name, const_type=p.const_type)
            for p in decl.generics.params
        )
    )
    target = type_usage(decl.name, decl.generics, elide_lifetimes=False)
    deprecated = deprecation_attrs(decl.attrs)
    return [
        TypeAlias(
            guard=render_guard((atom,)),
            vis=decl.vis,
            name=alias_name(decl.name, atom),
            generics=alias_generics,
            target=target,
            attrs=deprecated,
        )
        for atom in atoms
    ]


def generate_struct(
    decl: StructDecl, traits: tuple[str, ...], resolution: Resolution
) -> list[object]:
    items: list[object] = [GuardedStruct(guard=resolution.guard, decl=decl)]
    items.extend(generate_struct_aliases(decl, resolution.atoms))
    assertion = build_trait_assertion(decl, traits, resolution.guard)
    if assertion is not None:
        items.append(assertion)
    return items


ABSOLUTE_USE_MESSAGE = (
    "Platform modules do not support absolute paths (leading `::`). "
    "Please use a local identifier"
)
USE_SHAPE_MESSAGE = (
    "Platform modules on `use` declarations only support simple direct aliases "
    "(e.g., `use name;`)"
)
UNSAFE_MOD_MESSAGE = "Platform modules do not support `unsafe` modules"
INLINE_MOD_MESSAGE = (
    "Platform modules do not support inline modules with a body `{ ... }`. "
    "Please use a declaration like `mod name;` to allow swapping the file "
    "based on the platform."
)


def generate_platform_mod(
    decl: ModDecl | UseDecl, atoms: tuple[PlatformAtom, ...]
) -> tuple[list[object], list[Diagnostic]]:
    """Expand a module or `use` declaration into per-platform module pairs.

    For every atom: the file-backed platform module with the author's
    visibility, and a private `use <module> as <name>;` alias. External
    consumers therefore have to name the platform module, while code in the
    declaring scope can use the portable name.

    Rejected shapes produce one diagnostic and no items.
    """
    if isinstance(decl, UseDecl):
        if decl.tree.leading_colon:
            return [], [Diagnostic(ABSOLUTE_USE_MESSAGE, decl.location)]
        if decl.tree.kind != "name":
            message = f"{USE_SHAPE_MESSAGE}; found {decl.tree.kind} `{decl.tree.text}`"
            return [], [Diagnostic(message, decl.location)]
        name = decl.tree.text
    else:
        if decl.is_unsafe:
            return [], [Diagnostic(UNSAFE_MOD_MESSAGE, decl.location)]
        if decl.inline_body is not None:
            return [], [Diagnostic(INLINE_MOD_MESSAGE, decl.location)]
        name = decl.name

    items: list[object] = []
    for atom in atoms:
        guard = render_guard((atom,))
        items.append(
            PlatformModule(
                guard=guard, vis=decl.vis, module_name=atom.module_name, attrs=decl.attrs
            )
        )
        items.append(
            ModuleAlias(
                guard=guard, module_name=atom.module_name, alias=name, attrs=decl.attrs
            )
        )
    return items, []


# ===--- Rust emitter ---=== #


def format_cfg(guard: str) -> str:
    return f"#[cfg({guard})]"


def rust_string_literal(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def format_compile_error(diagnostic: Diagnostic) -> str:
    return f"compile_error!({rust_string_literal(diagnostic.message)});"


def format_receiver(receiver: Receiver) -> str:
    if receiver.ty is not None:
        prefix = "mut " if receiver.mutable else ""
        return f"{prefix}self: {receiver.ty}"
    if not receiver.reference:
        return "mut self" if receiver.mutable else "self"
    lifetime = f"{receiver.lifetime} " if receiver.lifetime else ""
    mutability = "mut " if receiver.mutable else ""
    return f"&{lifetime}{mutability}self"


def format_param(param: Param) -> str:
    ref = "ref " if param.by_ref else ""
    mutability = "mut " if param.mutable else ""
    return f"{ref}{mutability}{param.pattern}: {param.ty}"


def format_signature(sig: FnSignature, vis: str = "") -> str:
    qualifiers = []
    if vis:
        qualifiers.append(vis)
    if sig.is_const:
        qualifiers.append("const")
    if sig.is_async:
        qualifiers.append("async")
    if sig.is_unsafe:
        qualifiers.append("unsafe")
    if sig.abi is not None:
        qualifiers.append(f"extern {rust_string_literal(sig.abi)}")

    inputs = []
    if sig.receiver is not None:
        inputs.append(format_receiver(sig.receiver))
    inputs.extend(format_param(p) for p in sig.params)
    if sig.variadic is not None:
        inputs.append(sig.variadic.token)

    text = " ".join([*qualifiers, "fn", sig.name])
    text += format_generic_params(sig.generics.params)
    text += f"({', '.join(inputs)})"
    if sig.output is not None:
        text += f" -> {sig.output}"
    return text + format_where(sig.generics.where_clause)


def format_guarded_fn(item: GuardedFn) -> list[str]:
    lines = [format_cfg(item.guard), *item.decl.attrs]
    signature = format_signature(item.decl.sig, item.decl.vis)
    if item.forward is not None:
        lines.append(f"{signature} {{")
        lines.append(f"    {item.forward.render()}")
        lines.append("}")
    elif item.decl.body is not None:
        lines.extend(f"{signature} {item.decl.body}".splitlines())
    else:
        lines.append(f"{signature};")
    return lines


def format_struct(item: GuardedStruct) -> list[str]:
    decl = item.decl
    head = " ".join(part for part in (decl.vis, "struct", decl.name) if part)
    head += format_generic_params(decl.generics.params)
    where = format_where(decl.generics.where_clause)
    body = decl.body.strip()
    if body.startswith("("):
        # tuple structs put the where clause after the fields
        text = f"{head}{body.rstrip(';')}{where};"
    elif body == ";":
        text = f"{head}{where};"
    else:
        text = f"{head}{where} {body}"
    return [format_cfg(item.guard), *decl.attrs, *text.splitlines()]


def format_type_alias(item: TypeAlias) -> list[str]:
    head = " ".join(part for part in (item.vis, "type", item.name) if part)
    params = format_generic_params(item.generics.params, bounds=False, default=False)
    return [format_cfg(item.guard), *item.attrs, f"{head}{params} = {item.target};"]


def format_trait_assertion(item: TraitAssertion) -> list[str]:
    bounds = " + ".join([*item.traits, "?Sized"])
    params = f"<{', '.join(item.check_params)}>" if item.check_params else ""
    where = format_where(item.where_clause)
    return [
        format_cfg(item.guard),
        "const _: () = {",
        f"    fn _assert_traits<T: {bounds}>() {{}}",
        f"    fn _check{params}(){where} {{ _assert_traits::<{item.checked_type}>(); }}",
        "};",
    ]


def format_platform_module(item: PlatformModule) -> list[str]:
    head = " ".join(part for part in (item.vis, "mod", item.module_name) if part)
    return [format_cfg(item.guard), *item.attrs, f"{head};"]


def format_module_alias(item: ModuleAlias) -> list[str]:
    return [format_cfg(item.guard), *item.attrs, f"use {item.module_name} as {item.alias};"]


_ITEM_FORMATTERS = {
    GuardedFn: format_guarded_fn,
    GuardedStruct: format_struct,
    TypeAlias: format_type_alias,
    TraitAssertion: format_trait_assertion,
    PlatformModule: format_platform_module,
    ModuleAlias: format_module_alias,
}


def format_item(item: object) -> list[str]:
    formatter = _ITEM_FORMATTERS.get(type(item))
    if formatter is None:
        raise ValueError(f"No formatter for output item {type(item).__name__}")
    return formatter(item)


# ===--- Declaration manifest ---=== #

ENTRY_KINDS = ("function", "trait-function", "struct", "mod", "use")


class ManifestError(Exception):
    def __init__(self, message: str, location: SourceLocation = CALL_SITE):
        super().__init__(f"{location}: {message}" if location != CALL_SITE else message)
        self.message = message
        self.location = location


@dataclass(frozen=True)
class ManifestEntry:
    """One annotated declaration read from the manifest.

    Attributes:
        kind: One of ENTRY_KINDS; selects the generator.
        options_text: Raw option block, "" when the element has no options.
        options_location: Anchor for option diagnostics.
        declaration: CallableDecl, StructDecl, ModDecl or UseDecl.
    """

    kind: str
    options_text: str
    options_location: SourceLocation
    declaration: object


def _element_location(elem: ET.Element, prefix: str = "") -> SourceLocation | None:
    line = elem.get(f"{prefix}line")
    column = elem.get(f"{prefix}column")
    if line is None and column is None:
        return None
    try:
        return SourceLocation(int(line or 0), int(column or 0))
    except ValueError:
        raise ManifestError(
            f"<{elem.tag}> has non-integer {prefix}line/{prefix}column"
        ) from None


def _location(elem: ET.Element, fallback: SourceLocation = CALL_SITE) -> SourceLocation:
    return _element_location(elem) or fallback


def _required(elem: ET.Element, attr: str, location: SourceLocation) -> str:
    value = elem.get(attr)
    if value is None or not value.strip():
        raise ManifestError(f"<{elem.tag}> is missing required attribute '{attr}'", location)
    return value.strip()


def _parse_bool(elem: ET.Element, attr: str, location: SourceLocation) -> bool:
    value = elem.get(attr)
    if value is None:
        return False
    if value in ("true", "1"):
        return True
    if value in ("false", "0"):
        return False
    raise ManifestError(
        f"<{elem.tag}> attribute '{attr}' must be true or false, got {value!r}", location
    )


def _split_list(value: str | None, sep: str) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(sep) if part.strip())


def _attrs(elem: ET.Element) -> tuple[str, ...]:
    return tuple((a.text or "").strip() for a in elem.findall("attr") if (a.text or "").strip())


def parse_generics(elem: ET.Element, location: SourceLocation) -> Generics:
    params = []
    for g in elem.findall("generic"):
        g_location = _location(g, location)
        kind = _required(g, "kind", g_location)
        if kind not in GENERIC_KINDS:
            raise ManifestError(f"Unknown generic kind {kind!r}", g_location)
        if kind == "const":
            const_type = _required(g, "type", g_location)
        else:
            const_type = None
        params.append(
            GenericParam(
                kind=kind,
                name=_required(g, "name", g_location),
                bounds=_split_list(g.get("bounds"), "+"),
                const_type=const_type,
                default=g.get("default"),
            )
        )
    where = tuple((w.text or "").strip() for w in elem.findall("where") if (w.text or "").strip())
    return Generics(params=tuple(params), where_clause=where)


def parse_fn_signature(elem: ET.Element, location: SourceLocation) -> FnSignature:
    receiver = None
    receiver_elem = elem.find("receiver")
    if receiver_elem is not None:
        r_location = _location(receiver_elem, location)
        ty = receiver_elem.get("type")
        # `&self` unless told otherwise; a typed receiver is never a reference
        reference = ty is None
        if receiver_elem.get("ref") is not None:
            reference = _parse_bool(receiver_elem, "ref", r_location)
        receiver = Receiver(
            reference=reference,
            mutable=_parse_bool(receiver_elem, "mut", r_location),
            lifetime=receiver_elem.get("lifetime"),
            ty=ty,
        )

    params = []
    for p in elem.findall("param"):
        p_location = _location(p, location)
        pattern = p.get("name") or p.get("pattern")
        if not pattern:
            raise ManifestError("<param> needs a 'name' or 'pattern' attribute", p_location)
        params.append(
            Param(
                pattern=pattern.strip(),
                ty=_required(p, "type", p_location),
                mutable=_parse_bool(p, "mut", p_location),
                by_ref=_parse_bool(p, "ref", p_location),
                location=p_location,
            )
        )

    variadic = None
    variadic_elem = elem.find("variadic")
    if variadic_elem is not None:
        variadic = Variadic(
            name=variadic_elem.get("name"),
            location=_location(variadic_elem, location),
        )

    returns = elem.find("returns")
    output = (returns.text or "").strip() if returns is not None else ""

    return FnSignature(
        name=_required(elem, "name", location),
        generics=parse_generics(elem, location),
        receiver=receiver,
        params=tuple(params),
        variadic=variadic,
        output=output or None,
        is_async=_parse_bool(elem, "async", location),
        is_unsafe=_parse_bool(elem, "unsafe", location),
        is_const=_parse_bool(elem, "const", location),
        abi=elem.get("abi"),
    )


def _body_text(elem: ET.Element, empty: str) -> str | None:
    body = elem.find("body")
    if body is None:
        return None
    return (body.text or "").strip() or empty


def parse_callable(elem: ET.Element, location: SourceLocation) -> CallableDecl:
    return CallableDecl(
        sig=parse_fn_signature(elem, location),
        vis=elem.get("vis", "").strip(),
        attrs=_attrs(elem),
        body=_body_text(elem, "{}"),
        location=location,
    )


def parse_struct(elem: ET.Element, location: SourceLocation) -> StructDecl:
    return StructDecl(
        name=_required(elem, "name", location),
        vis=elem.get("vis", "").strip(),
        attrs=_attrs(elem),
        generics=parse_generics(elem, location),
        body=_body_text(elem, ";") or ";",
        location=location,
    )


def parse_mod(elem: ET.Element, location: SourceLocation) -> ModDecl:
    return ModDecl(
        name=_required(elem, "name", location),
        vis=elem.get("vis", "").strip(),
        attrs=_attrs(elem),
        is_unsafe=_parse_bool(elem, "unsafe", location),
        inline_body=_body_text(elem, "{}"),
        location=location,
    )


def parse_use(elem: ET.Element, location: SourceLocation) -> UseDecl:
    tree_text = _required(elem, "tree", location)
    try:
        tree = parse_use_tree(tree_text)
    except ValueError as err:
        raise ManifestError(str(err), location) from err
    return UseDecl(
        tree=tree,
        vis=elem.get("vis", "").strip(),
        attrs=_attrs(elem),
        location=location,
    )


_ENTRY_PARSERS = {
    "function": parse_callable,
    "trait-function": parse_callable,
    "struct": parse_struct,
    "mod": parse_mod,
    "use": parse_use,
}


def parse_manifest_root(root: ET.Element) -> list[ManifestEntry]:
    """Convert a parsed <manifest> root into ManifestEntry objects, in order.

    Raises:
        ManifestError: Wrong root tag, unknown entry element, or missing or
            malformed attributes.
    """
    if root.tag != "manifest":
        raise ManifestError(f"Expected <manifest> root element, got <{root.tag}>")

    entries: list[ManifestEntry] = []
    for elem in root:
        location = _location(elem)
        parser = _ENTRY_PARSERS.get(elem.tag)
        if parser is None:
            raise ManifestError(
                f"Unknown declaration element <{elem.tag}>; expected one of: "
                + ", ".join(ENTRY_KINDS),
                location,
            )
        entries.append(
            ManifestEntry(
                kind=elem.tag,
                options_text=elem.get("options", ""),
                options_location=_element_location(elem, "options-") or location,
                declaration=parser(elem, location),
            )
        )
    return entries


def load_manifest(path: Path) -> list[ManifestEntry]:
    return parse_manifest_root(ET.parse(path).getroot())


# ===--- Pipeline ---=== #


@dataclass(frozen=True)
class EntryOutput:
    """Generated items and diagnostics for one manifest entry.

    Diagnostics are emitted ahead of the items as compile_error! lines, so an
    empty items tuple with diagnostics is a rejected declaration.
    """

    kind: str
    name: str
    items: tuple[object, ...]
    diagnostics: tuple[Diagnostic, ...]


def declaration_name(decl: object) -> str:
    if isinstance(decl, CallableDecl):
        return decl.sig.name
    if isinstance(decl, UseDecl):
        return decl.tree.text
    if isinstance(decl, (StructDecl, ModDecl)):
        return decl.name
    raise ValueError(f"Unsupported declaration type {type(decl).__name__}")


def generate_entry(entry: ManifestEntry) -> EntryOutput:
    """Run option parsing, resolution and the matching generator for one entry.

    An option parse failure is fatal for the entry: one diagnostic, no items.
    Every other diagnostic is collected alongside whatever items the
    generator still produced.
    """
    decl = entry.declaration
    name = declaration_name(decl)
    try:
        options = parse_options(
            entry.options_text,
            allow_traits=entry.kind == "struct",
            location=entry.options_location,
        )
    except OptionParseError as err:
        return EntryOutput(entry.kind, name, (), (err.diagnostic,))

    resolution = resolve_options(options)
    diagnostics: list[Diagnostic] = []
    if resolution.diagnostic is not None:
        diagnostics.append(resolution.diagnostic)

    items: list[object] = []
    if entry.kind == "function":
        wrapper, fn_diagnostics = transform(decl, resolution.guard)
        diagnostics.extend(fn_diagnostics)
        if wrapper is not None:
            items.append(wrapper)
    elif entry.kind == "trait-function":
        items.append(transform_trait_fn(decl, resolution.guard))
    elif entry.kind == "struct":
        items.extend(generate_struct(decl, options.traits, resolution))
    elif entry.kind in ("mod", "use"):
        mod_items, mod_diagnostics = generate_platform_mod(decl, resolution.atoms)
        items.extend(mod_items)
        diagnostics.extend(mod_diagnostics)
    else:
        raise ValueError(f"Unknown entry kind: {entry.kind}")

    return EntryOutput(entry.kind, name, tuple(items), tuple(diagnostics))


def format_entry(output: EntryOutput) -> list[str]:
    lines = [format_compile_error(d) for d in output.diagnostics]
    for item in output.items:
        if lines:
            lines.append("")
        lines.extend(format_item(item))
    return lines


_HEADER_BORDER: str = "// x-------------------------------------------x //"


def format_file_header(source_label: str, entry_count: int) -> list[str]:
    if not source_label:
        raise ValueError("source_label must not be empty")
    return [
        _HEADER_BORDER,
        "// | Platform-gated declarations for Rust",
        "// | Generated by platgen",
        f"// | Source: {source_label}",
        f"// | Entries: {entry_count}",
        _HEADER_BORDER,
    ]


def assemble_output_source(source_label: str, outputs: list[EntryOutput]) -> str:
    """Assemble the complete generated .rs source.

    Header block, then one blank-line separated section per entry in manifest
    order. Entries producing nothing at all are skipped. Always ends with a
    single trailing newline.
    """
    parts: list[str] = list(format_file_header(source_label, len(outputs)))
    for output in outputs:
        entry_lines = format_entry(output)
        if entry_lines:
            parts.append("")
            parts.extend(entry_lines)
    return "\n".join(parts) + "\n"


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing the generated source file.

    Attributes:
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    path: Path
    line_count: int
    byte_count: int


def write_output(output_path: Path, content: str) -> FileWriteResult:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8")
    resolved = output_path.resolve()
    return FileWriteResult(
        path=resolved,
        line_count=content.count("\n"),
        byte_count=len(resolved.read_bytes()),
    )


@dataclass(frozen=True)
class GenerationResult:
    outputs: tuple[EntryOutput, ...]
    write: FileWriteResult

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        return tuple(d for output in self.outputs for d in output.diagnostics)


def format_diagnostic(source_label: str, diagnostic: Diagnostic) -> str:
    return f"{source_label}:{diagnostic.location}: error: {diagnostic.message}"


def run_generate(config: GenerateConfig) -> GenerationResult:
    """Execute the generation pipeline for a GenerateConfig.

    Stages: load manifest -> generate each entry -> assemble -> write ->
    report diagnostics (stderr) -> print summary (stdout). The output file is
    written even when diagnostics exist; the compile_error! lines in it make
    the problems surface in the Rust build.

    Raises:
        OSError: Manifest not readable or output not writable.
        ET.ParseError: Malformed manifest XML.
        ManifestError: Well-formed XML that does not describe declarations.
    """
    print(f"Parsing: {config.input_path}")
    entries = load_manifest(config.input_path)
    print(f"  Entries: {len(entries)}")

    outputs = [generate_entry(entry) for entry in entries]
    item_count = sum(len(o.items) for o in outputs)
    diagnostic_count = sum(len(o.diagnostics) for o in outputs)
    print(f"  Generated: {item_count} items, {diagnostic_count} diagnostics")

    source_label = config.input_path.name
    content = assemble_output_source(source_label, outputs)
    write_result = write_output(config.output_path, content)
    print(f"  Written: {write_result.line_count} lines to {write_result.path}")

    result = GenerationResult(outputs=tuple(outputs), write=write_result)
    for diagnostic in result.diagnostics:
        print(format_diagnostic(source_label, diagnostic), file=sys.stderr)

    print_generation_summary(build_generation_summary(source_label, result))
    return result


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class GenerationCounts:
    """Per-category item counts across all entries.

    Attributes:
        wrappers: Generated forwarding wrappers.
        conditional_fns: Functions with a body, emitted under a guard.
        trait_fns: Guarded trait method declarations.
        structs: Guarded struct definitions.
        aliases: Per-platform type aliases.
        assertions: Trait-bound assertion blocks.
        platform_modules: Per-platform module declarations (each paired with
            a private alias).
        diagnostics: Build-time errors emitted as compile_error! lines.
    """

    wrappers: int
    conditional_fns: int
    trait_fns: int
    structs: int
    aliases: int
    assertions: int
    platform_modules: int
    diagnostics: int


@dataclass(frozen=True)
class GenerationSummary:
    source_label: str
    output_path: str
    counts: GenerationCounts
    line_count: int


def build_generation_counts(outputs: tuple[EntryOutput, ...]) -> GenerationCounts:
    wrappers = conditional_fns = trait_fns = 0
    structs = aliases = assertions = platform_modules = 0
    for output in outputs:
        for item in output.items:
            if isinstance(item, GuardedFn):
                if item.forward is not None:
                    wrappers += 1
                elif output.kind == "trait-function":
                    trait_fns += 1
                else:
                    conditional_fns += 1
            elif isinstance(item, GuardedStruct):
                structs += 1
            elif isinstance(item, TypeAlias):
                aliases += 1
            elif isinstance(item, TraitAssertion):
                assertions += 1
            elif isinstance(item, PlatformModule):
                platform_modules += 1
    return GenerationCounts(
        wrappers=wrappers,
        conditional_fns=conditional_fns,
        trait_fns=trait_fns,
        structs=structs,
        aliases=aliases,
        assertions=assertions,
        platform_modules=platform_modules,
        diagnostics=sum(len(o.diagnostics) for o in outputs),
    )


def build_generation_summary(
    source_label: str, result: GenerationResult
) -> GenerationSummary:
    return GenerationSummary(
        source_label=source_label,
        output_path=str(result.write.path),
        counts=build_generation_counts(result.outputs),
        line_count=result.write.line_count,
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render a GenerationSummary as the console report.

    The Diagnostics row always appears; a non-zero count is followed by a
    pointer to stderr. Returns a string with exactly one trailing newline.
    """
    counts = summary.counts
    lines: list[str] = [
        "Platform declarations generated:",
        "",
        f"  Source:     {summary.source_label}",
        f"  Output:     {summary.output_path}",
        "",
        "  Items generated:",
    ]

    def _row(label: str, count: int) -> str:
        return f"    {label:<18}{count:>6}"

    lines.append(_row("Wrappers:", counts.wrappers))
    lines.append(_row("Conditional fns:", counts.conditional_fns))
    lines.append(_row("Trait fns:", counts.trait_fns))
    lines.append(_row("Structs:", counts.structs))
    lines.append(_row("Type aliases:", counts.aliases))
    lines.append(_row("Assertions:", counts.assertions))
    lines.append(_row("Platform modules:", counts.platform_modules))

    lines.append("")
    diagnostics_row = f"  Diagnostics: {counts.diagnostics}"
    if counts.diagnostics:
        diagnostics_row += " (see stderr)"
    lines.append(diagnostics_row)
    lines.append(f"  Total: {summary.line_count:,} lines")
    lines.append("")
    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    print(format_generation_summary(summary), end="")


# ===--- Discovery commands ---=== #


def format_platforms_table() -> str:
    """Return the --list-platforms output.

    Output format:

        Platform groups:

          linux      linux                    alias suffix: Linux
          posix      linux, macos
          ...
    """
    lines = ["Platform groups:", ""]
    for group, atoms in PLATFORM_GROUPS.items():
        expansion = ", ".join(atom.name for atom in atoms)
        row = f"  {group:<10} {expansion:<24}"
        if len(atoms) == 1 and atoms[0].name == group:
            row += f" alias suffix: {atoms[0].suffix}"
        lines.append(row.rstrip())
    lines.append("")
    return "\n".join(lines)


def format_resolution(options_text: str, resolution: Resolution) -> str:
    platforms = ", ".join(atom.name for atom in resolution.atoms) or "(none)"
    lines = [
        f"Options:   {options_text.strip() or '(defaults)'}",
        f"Platforms: {platforms}",
        f"Guard:     {format_cfg(resolution.guard)}",
    ]
    if resolution.diagnostic is not None:
        lines.append(f"Error:     {resolution.diagnostic.message}")
    lines.append("")
    return "\n".join(lines)


def run_discovery(config: DiscoveryConfig) -> None:
    """Execute a discovery command and print its result.

    Raises:
        SystemExit(1): When --resolve leaves no platform.
    """
    if config.command == "list-platforms":
        print(format_platforms_table(), end="")
        return

    assert config.options_text is not None  # validate_config guarantees this
    resolution = resolve_options(parse_options(config.options_text))
    print(format_resolution(config.options_text, resolution), end="")
    if resolution.diagnostic is not None:
        raise SystemExit(1)


# ===--- Main generation ---=== #


def main():
    try:
        config = build_config()
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    if isinstance(config, DiscoveryConfig):
        run_discovery(config)
        return

    try:
        result = run_generate(config)
    except (OSError, ET.ParseError, ManifestError) as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err

    if result.diagnostics:
        raise SystemExit(1)


if __name__ == "__main__":
    main()

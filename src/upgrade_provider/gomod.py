# gomod.py
# Reader for the go.mod dependency manifest.
#
# Only what the classifier and orchestrator need is modelled, but every
# directive of the grammar is accepted so real-world provider manifests parse:
#
#   module <path>
#   go <version>
#   toolchain <name>
#   godebug <key>=<value>
#   require <path> <version>          // indirect
#   exclude <path> <version>
#   replace <path> [<version>] => <path> [<version>]
#   retract <version> | [<low>, <high>]
#   tool <path>
#   ignore <path>
#
# Any directive may also use the block form `verb ( ... )`.

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .errors import ManifestError

# A trailing major-version element: /v2, /v3, ... /v10, ... (never /v0 or /v1)
VERSION_SUFFIX = re.compile(r"/v(?:[2-9]|[1-9][0-9]+)$")

BLOCK_VERBS = {"require", "exclude", "replace", "retract", "godebug", "module", "go", "toolchain", "tool", "ignore"}

_GO_VERSION = re.compile(r"^[0-9]+(\.[0-9]+)*([a-z]+[0-9]+)?$")


def modpath_without_version(path: str) -> str:
    """
    Strip a trailing major-version suffix from a module path.

        github.com/org/repo/v10 -> github.com/org/repo
        github.com/org/repo/v1  -> github.com/org/repo/v1
    """
    match = VERSION_SUFFIX.search(path)
    if match:
        return path[: match.start()]
    return path


def is_local_path(path: str) -> bool:
    return path.startswith(("./", "../", "/")) or path in (".", "..")


# ---------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class ModuleVersion:
    """A module path plus an optional version; compared by unversioned path."""
    path: str
    version: Optional[str] = None

    @property
    def base_path(self) -> str:
        return modpath_without_version(self.path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ModuleVersion):
            return NotImplemented
        return self.base_path == other.base_path

    def __hash__(self) -> int:
        return hash(self.base_path)

    def __str__(self) -> str:
        if self.version:
            return f"{self.path}@{self.version}"
        return self.path


@dataclass(frozen=True)
class Require:
    mod: ModuleVersion
    indirect: bool = False


@dataclass(frozen=True)
class Replace:
    old: ModuleVersion
    new: ModuleVersion

    def __str__(self) -> str:
        return f"{self.old} => {self.new}"


@dataclass
class GoModFile:
    filename: str
    module: Optional[ModuleVersion] = None
    go: Optional[str] = None
    toolchain: Optional[str] = None
    require: List[Require] = field(default_factory=list)
    exclude: List[ModuleVersion] = field(default_factory=list)
    replace: List[Replace] = field(default_factory=list)
    retract: List[str] = field(default_factory=list)
    godebug: Dict[str, str] = field(default_factory=dict)
    tool: List[str] = field(default_factory=list)
    ignore: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------
# Lexing
# ---------------------------------------------------------------------

def _error(filename: str, lineno: int, msg: str) -> ManifestError:
    return ManifestError(f"{filename}:{lineno}: {msg}")


_SIMPLE_ESCAPES = {
    "a": 0x07, "b": 0x08, "f": 0x0C, "n": 0x0A, "r": 0x0D, "t": 0x09, "v": 0x0B,
    "\\": 0x5C, '"': 0x22,
}
# digits following the escape letter; octal escapes have no letter
_HEX_ESCAPES = {"x": 2, "u": 4, "U": 8}


def _unquote(body: str) -> str:
    """
    Decode the inside of a Go interpreted string literal.

    \\x and octal escapes denote raw bytes, \\u and \\U code points; the result
    must be valid UTF-8. Raises ValueError on anything Go rejects.
    """
    out = bytearray()
    i, n = 0, len(body)
    while i < n:
        c = body[i]
        if c != "\\":
            out += c.encode("utf-8")
            i += 1
            continue
        if i + 1 >= n:
            raise ValueError("trailing backslash")
        esc = body[i + 1]
        if esc in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[esc])
            i += 2
        elif esc in _HEX_ESCAPES:
            digits = body[i + 2:i + 2 + _HEX_ESCAPES[esc]]
            if len(digits) != _HEX_ESCAPES[esc] or not all(d in "0123456789abcdefABCDEF" for d in digits):
                raise ValueError(f"bad \\{esc} escape")
            value = int(digits, 16)
            if esc == "x":
                out.append(value)
            else:
                out += chr(value).encode("utf-8")
            i += 2 + len(digits)
        elif esc in "01234567":
            digits = body[i + 1:i + 4]
            if len(digits) != 3 or not all(d in "01234567" for d in digits) or int(digits, 8) > 0xFF:
                raise ValueError("bad octal escape")
            out.append(int(digits, 8))
            i += 4
        else:
            raise ValueError(f"unknown escape \\{esc}")
    return out.decode("utf-8")


def _tokenize(line: str, filename: str, lineno: int) -> Tuple[List[str], str]:
    """Split one line into tokens and the trailing // comment (if any)."""
    tokens: List[str] = []
    i, n = 0, len(line)
    while i < n:
        c = line[i]
        if c.isspace():
            i += 1
            continue
        if line.startswith("//", i):
            return tokens, line[i + 2:].strip()
        if c in "()":
            tokens.append(c)
            i += 1
            continue
        if line.startswith("=>", i):
            tokens.append("=>")
            i += 2
            continue
        if c == '"':
            j = i + 1
            while j < n and line[j] != '"':
                j += 2 if line[j] == "\\" else 1
            if j >= n:
                raise _error(filename, lineno, "unterminated quoted string")
            try:
                tokens.append(_unquote(line[i + 1:j]))
            except ValueError:
                raise _error(filename, lineno, f"invalid quoted string {line[i:j + 1]}")
            i = j + 1
            continue
        if c == "`":
            j = line.find("`", i + 1)
            if j < 0:
                raise _error(filename, lineno, "unterminated raw string")
            tokens.append(line[i + 1:j])
            i = j + 1
            continue
        j = i
        while j < n and not line[j].isspace() and line[j] not in '()"`':
            if line.startswith("//", j) or line.startswith("=>", j):
                break
            j += 1
        tokens.append(line[i:j])
        i = j
    return tokens, ""


# ---------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------

def _parse_version(filename: str, lineno: int, path: str, version: str) -> str:
    if not version.startswith("v"):
        raise _error(filename, lineno, f"{path}: version {version!r} must be of the form v1.2.3")
    return version


def _parse_replace(filename: str, lineno: int, args: List[str]) -> Replace:
    if "=>" not in args:
        raise _error(filename, lineno, "usage: replace module/path [v1.2.3] => other/module v1.4\n"
                                       "\t or replace module/path [v1.2.3] => ../local/directory")
    arrow = args.index("=>")
    old, new = args[:arrow], args[arrow + 1:]
    if len(old) not in (1, 2) or len(new) not in (1, 2):
        raise _error(filename, lineno, "usage: replace module/path [v1.2.3] => other/module v1.4")

    old_mod = ModuleVersion(old[0], _parse_version(filename, lineno, old[0], old[1]) if len(old) == 2 else None)
    if len(new) == 1:
        if not is_local_path(new[0]):
            raise _error(
                filename, lineno,
                "replacement module without version must be directory path (rooted or starting with ./ or ../)",
            )
        return Replace(old=old_mod, new=ModuleVersion(new[0]))
    if is_local_path(new[0]):
        raise _error(filename, lineno, "replacement module directory path must not have version")
    return Replace(old=old_mod, new=ModuleVersion(new[0], _parse_version(filename, lineno, new[0], new[1])))


def _apply(mod: GoModFile, verb: str, args: List[str], comment: str, lineno: int) -> None:
    filename = mod.filename

    def arity(count: int, usage: str) -> None:
        if len(args) != count:
            raise _error(filename, lineno, f"usage: {verb} {usage}")

    if verb == "module":
        arity(1, "module/path")
        if mod.module is not None:
            raise _error(filename, lineno, "repeated module statement")
        mod.module = ModuleVersion(args[0])
    elif verb == "go":
        arity(1, "go 1.23")
        if not _GO_VERSION.match(args[0]):
            raise _error(filename, lineno, f"invalid go version {args[0]!r}: must match format 1.23")
        mod.go = args[0]
    elif verb == "toolchain":
        arity(1, "toolchain go1.23.1")
        mod.toolchain = args[0]
    elif verb == "godebug":
        arity(1, "godebug key=value")
        key, sep, value = args[0].partition("=")
        if not sep or not key:
            raise _error(filename, lineno, "usage: godebug key=value")
        mod.godebug[key] = value
    elif verb in ("require", "exclude"):
        arity(2, "module/path v1.2.3")
        version = _parse_version(filename, lineno, args[0], args[1])
        if verb == "require":
            indirect = comment == "indirect" or comment.startswith("indirect;")
            mod.require.append(Require(ModuleVersion(args[0], version), indirect=indirect))
        else:
            mod.exclude.append(ModuleVersion(args[0], version))
    elif verb == "replace":
        mod.replace.append(_parse_replace(filename, lineno, args))
    elif verb == "retract":
        if not args:
            raise _error(filename, lineno, "usage: retract version | retract [low, high]")
        mod.retract.append(" ".join(args))
    elif verb == "tool":
        arity(1, "tool module/path/to/command")
        mod.tool.append(args[0])
    elif verb == "ignore":
        arity(1, "ignore ./path/to/dir")
        mod.ignore.append(args[0])
    else:
        raise _error(filename, lineno, f"unknown directive: {verb}")


def parse_gomod(filename: str, data: Union[str, bytes]) -> GoModFile:
    """
    Parse the text of a go.mod file.

    Raises:
        ManifestError: the text does not follow the go.mod grammar.
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ManifestError(f"{filename}: {e}")

    mod = GoModFile(filename=filename)
    block_verb: Optional[str] = None
    block_line = 0

    for lineno, line in enumerate(data.splitlines(), start=1):
        tokens, comment = _tokenize(line, filename, lineno)
        if not tokens:
            continue

        if block_verb is not None:
            if tokens == [")"]:
                block_verb = None
                continue
            if "(" in tokens or ")" in tokens:
                raise _error(filename, lineno, "unexpected parenthesis inside block")
            _apply(mod, block_verb, tokens, comment, lineno)
            continue

        verb, args = tokens[0], tokens[1:]
        if verb in ("(", ")", "=>"):
            raise _error(filename, lineno, f"unexpected {verb!r}")
        if args == ["("]:
            if verb not in BLOCK_VERBS:
                raise _error(filename, lineno, f"unknown block type: {verb}")
            block_verb, block_line = verb, lineno
            continue
        if "(" in args or ")" in args:
            raise _error(filename, lineno, "unexpected parenthesis")
        _apply(mod, verb, args, comment, lineno)

    if block_verb is not None:
        raise _error(filename, block_line, f"unterminated {block_verb} block")

    return mod


def read_gomod(path: Union[str, Path]) -> GoModFile:
    """Read and parse a go.mod file from disk."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ManifestError(f"{path}: {e.strerror or e}")
    return parse_gomod(str(path), data)

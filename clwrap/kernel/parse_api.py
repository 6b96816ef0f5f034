"""
Analyzes OpenCL C code to extract the kernel declarations it exposes.

Source text goes through three stages: comments are stripped (string literals
are preserved), multi-line kernel parameter lists are collapsed onto a single
line, and then each line is tokenized and matched against the kernel
declaration grammar. Lines that do not hold a kernel declaration are skipped
silently unless `strict=True` is given, in which case a line that starts a
kernel declaration but fails to parse raises a `KernelSyntaxError`.
"""

import re
from logging import getLogger
from typing import NamedTuple, List, Optional

logger = getLogger(__name__)

KERNEL_KEYWORDS = ("kernel", "__kernel")
ADDRESS_SPACES = ("global", "local", "read_only", "write_only")
TYPE_QUALIFIERS = ("const", "volatile")
POINTER_QUALIFIERS = ("const", "volatile", "restrict", "__restrict")
UNSIGNED_TYPES = ("char", "short", "int", "long")
VECTOR_WIDTHS = (2, 3, 4, 8, 16)
VECTOR_BASE_TYPES = (
    "char",
    "uchar",
    "short",
    "ushort",
    "int",
    "uint",
    "long",
    "ulong",
    "float",
    "double",
)

COMMENTS_AND_STRINGS = re.compile(
    r"/\*.*?\*/" r"|//[^\n]*\n?" r'|"(?:\\[^\n]|[^"\n])*"',
    re.DOTALL,
)
KERNEL_HEADER = re.compile(r"\b(?:__)?kernel[ \t]+void[ \t]+\w+[ \t]*\(")
LINE_BREAK = re.compile(r"[ \t]*\r?\n\s*")
USING_DIRECTIVE = re.compile(r"using \[([^\]]+)\]")
VECTOR_TYPE = re.compile(
    rf"^(?P<base>{'|'.join(VECTOR_BASE_TYPES)})"
    rf"(?P<width>{'|'.join(str(w) for w in sorted(VECTOR_WIDTHS, reverse=True))})$"
)

TOKEN_SPEC = [
    ("IDENT", r"[A-Za-z_][A-Za-z0-9_]*"),
    ("NUMBER", r"[0-9][0-9A-Za-z_.]*"),
    ("STAR", r"\*"),
    ("LPAREN", r"\("),
    ("RPAREN", r"\)"),
    ("COMMA", r","),
    ("WS", r"\s+"),
    ("OTHER", r"."),
]
TOKEN_PATTERN = re.compile("|".join(f"(?P<{k}>{p})" for k, p in TOKEN_SPEC))


class KernelSyntaxError(ValueError):
    """A kernel declaration could not be parsed"""

    def __init__(self, message, line=None, column=None, filename=None):
        self.message = message
        self.line = line
        self.column = column
        self.filename = filename
        super().__init__(str(self))

    def __str__(self):
        where = ":".join(
            str(x) for x in (self.filename, self.line, self.column) if x is not None
        )
        return f"{where}: {self.message}" if where else self.message


class Token(NamedTuple):
    kind: str
    value: str
    column: int


class Parameter(NamedTuple):
    """
    One kernel parameter as written in the source.

    The qualifier is the address space without its `__` prefix, or an empty
    string when the parameter has none (passed by value).
    """

    qualifier: str
    datatype: str
    vector_width: int
    pointer: bool
    identifier: str
    column: int = 0


class KernelSignature(NamedTuple):
    name: str
    params: List[Parameter]
    line: Optional[int] = None


class ParsedSource(NamedTuple):
    imports: List[str]
    kernels: List[KernelSignature]


def tokenize(line):
    """
    Split a line of source into tokens, dropping whitespace.
    """
    return [
        Token(m.lastgroup, m.group(), m.start() + 1)
        for m in TOKEN_PATTERN.finditer(line)
        if m.lastgroup != "WS"
    ]


def strip_comments(code, keep_lines=False):
    """
    Remove block and line comments, leaving string literals intact.

    Block comments are removed entirely, or replaced with the line breaks
    they span if `keep_lines` is set; a line comment is replaced with a
    single newline so that the remaining lines keep their structure. The
    result is undefined for source with unterminated string literals.
    """

    def replace(match):
        text = match.group(0)
        if text.startswith("/*"):
            return "\n" * text.count("\n") if keep_lines else ""
        if text.startswith("//"):
            return "\n"
        return text

    return COMMENTS_AND_STRINGS.sub(replace, code)


def find_closing_paren(code, lparen):
    depth = 0
    for i in range(lparen, len(code)):
        if code[i] == "(":
            depth += 1
        elif code[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    return None


def normalize_signatures(code):
    """
    Collapse the parameter list of each kernel declaration onto one line.

    Only the text between the opening parenthesis of a kernel header and its
    matching closing parenthesis is rewritten. The line breaks removed from a
    parameter list are put back at the end of the line holding its closing
    parenthesis, so every line keeps its number.
    """
    pieces = list()
    position = 0

    for match in KERNEL_HEADER.finditer(code):
        if match.start() < position:
            continue
        rparen = find_closing_paren(code, match.end() - 1)
        if rparen is None:
            break
        params = code[match.end() : rparen]
        eol = code.find("\n", rparen)
        eol = len(code) if eol == -1 else eol
        pieces.append(code[position : match.end()])
        pieces.append(LINE_BREAK.sub(" ", params))
        pieces.append(code[rparen:eol])
        pieces.append("\n" * params.count("\n"))
        position = eol

    pieces.append(code[position:])
    return str().join(pieces)


def find_using(code):
    """
    Return the names requested by `using [<name>]` directives, in order.
    """
    return [m.group(1) for m in USING_DIRECTIVE.finditer(code)]


def split_vector_type(datatype):
    """
    Split a type name such as `float4` into its base type and vector width.

    Only the numeric base types carry a vector width; any other type name is
    returned whole with a width of zero.
    """
    match = VECTOR_TYPE.match(datatype)
    if match is None:
        return datatype, 0
    return match.group("base"), int(match.group("width"))


class SignatureParser:
    """
    Recursive-descent parser for a single kernel declaration.
    """

    def __init__(self, tokens, line=None, filename=None):
        self.tokens = tokens
        self.pos = 0
        self.line = line
        self.filename = filename

    def error(self, message):
        token = self.peek()
        column = token.column if token else None
        return KernelSyntaxError(message, self.line, column, self.filename)

    def peek(self, offset=0):
        i = self.pos + offset
        return self.tokens[i] if i < len(self.tokens) else None

    def peek_ident(self, *values):
        token = self.peek()
        return token is not None and token.kind == "IDENT" and token.value in values

    def eat(self, kind, value=None):
        token = self.peek()
        if token is None:
            raise self.error(f"expected {value or kind}, got end of line")
        if token.kind != kind or (value is not None and token.value != value):
            raise self.error(f"expected {value or kind}, got '{token.value}'")
        self.pos += 1
        return token

    def declaration(self):
        self.eat("IDENT")
        self.eat("IDENT", "void")
        name = self.eat("IDENT").value
        self.eat("LPAREN")
        params = list()

        if self.peek_ident("void") and self.peek(1) and self.peek(1).kind == "RPAREN":
            self.eat("IDENT")
        elif self.peek() is not None and self.peek().kind != "RPAREN":
            params.append(self.parameter())
            while self.peek() is not None and self.peek().kind == "COMMA":
                self.eat("COMMA")
                params.append(self.parameter())

        self.eat("RPAREN")
        return KernelSignature(name=name, params=params, line=self.line)

    def parameter(self):
        start = self.peek()
        column = start.column if start else 0
        qualifier = str()
        self.type_qualifiers()

        token = self.peek()
        if token is not None and token.kind == "IDENT":
            space = token.value[2:] if token.value.startswith("__") else token.value
            if space in ADDRESS_SPACES:
                qualifier = space
                self.pos += 1

        self.type_qualifiers()
        datatype, vector_width = split_vector_type(self.type_name())
        pointer = False

        if self.peek() is not None and self.peek().kind == "STAR":
            self.eat("STAR")
            pointer = True
            while self.peek_ident(*POINTER_QUALIFIERS):
                self.pos += 1

        identifier = self.eat("IDENT").value
        return Parameter(qualifier, datatype, vector_width, pointer, identifier, column)

    def type_qualifiers(self):
        while self.peek_ident(*TYPE_QUALIFIERS):
            self.pos += 1

    def type_name(self):
        token = self.eat("IDENT")
        if token.value == "unsigned" and self.peek_ident(*UNSIGNED_TYPES):
            return f"unsigned {self.eat('IDENT').value}"
        return token.value


def match_kernel(line, line_number=None, strict=False, filename=None):
    """
    Match a single line against the kernel declaration grammar.

    Returns a `KernelSignature`, or `None` if the line holds no kernel
    declaration. A line that starts a declaration (a `kernel void` keyword
    pair) but does not parse is skipped, or raises `KernelSyntaxError` when
    `strict` is set. Preprocessor lines never hold a declaration.
    """
    tokens = tokenize(line)

    if tokens and tokens[0].value == "#":
        return None

    for n, token in enumerate(tokens[:-1]):
        if token.kind != "IDENT" or token.value not in KERNEL_KEYWORDS:
            continue
        if tokens[n + 1].kind != "IDENT" or tokens[n + 1].value != "void":
            continue

        parser = SignatureParser(tokens[n:], line=line_number, filename=filename)
        try:
            return parser.declaration()
        except KernelSyntaxError as e:
            if strict:
                raise
            logger.debug(f"skip unrecognized declaration: {e}")
            return None

    return None


def scan(lines, strict=False, filename=None):
    """
    Generator to emit events encountered parsing kernel source lines.

    Yields `("kernel", signature)` for each line holding a declaration and
    `("skip", line_number)` for every other line.
    """
    for number, line in enumerate(lines, start=1):
        signature = match_kernel(line, number, strict=strict, filename=filename)
        if signature is not None:
            yield "kernel", signature
        else:
            yield "skip", number


def parse_api(code, strict=False, filename=None):
    """
    Parse OpenCL C source to extract its kernel declarations.

    Returns a `ParsedSource` with the names requested through `using`
    directives (collected from the raw text, comments included) and the
    kernel signatures in source order.
    """
    imports = find_using(code)
    code = normalize_signatures(strip_comments(code, keep_lines=True))
    kernels = list()
    skipped = 0

    for event, value in scan(code.splitlines(), strict=strict, filename=filename):
        if event == "kernel":
            kernels.append(value)
        elif event == "skip":
            skipped += 1

    logger.debug(
        f"{filename or '<string>'}: {len(kernels)} kernels, {skipped} other lines"
    )
    return ParsedSource(imports=imports, kernels=kernels)


def main():
    import argparse

    args = argparse.ArgumentParser()
    args.add_argument("filename", type=str)
    args.add_argument("--strict", action="store_true")
    parsed = args.parse_args()

    with open(parsed.filename) as f:
        api = parse_api(f.read(), strict=parsed.strict, filename=parsed.filename)

    for name in api.imports:
        print(f"using {name}")

    for kernel in api.kernels:
        params = ", ".join(
            f"{p.identifier}: {p.qualifier or 'value'} {p.datatype}"
            f"{p.vector_width or ''}{'*' if p.pointer else ''}"
            for p in kernel.params
        )
        print(f"{kernel.name} ({params})")


if __name__ == "__main__":
    main()

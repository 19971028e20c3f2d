# ============================================================================
# BASH / FISH LEXER
# ============================================================================

from __future__ import annotations

import re

from pygments.lexer import RegexLexer, bygroups, include, words
from pygments.token import (
    Comment,
    Error,
    Keyword,
    Name,
    Number,
    Operator,
    Punctuation,
    String,
    Text,
    Token,
)
from rich.style import Style
from rich.syntax import SyntaxTheme

# Custom token types so Rich and Pygments agree on them
Name.Argument = Token.Name.Argument
Name.Variable.Magic = Token.Name.Variable.Magic

BASH_KEYWORDS = (
    "if", "then", "elif", "else", "fi", "for", "in", "while", "until", "do",
    "done", "case", "esac", "function", "select",
)
FISH_KEYWORDS = ("and", "or", "not", "begin", "end", "switch", "return", "breakpoint")
BUILTINS = (
    "echo", "printf", "cd", "pwd", "export", "unset", "readonly", "source",
    "exit", "break", "continue", "set", "alias", "type", "test", "read",
    "string", "math", "contains", "functions", "abbr", "bind", "history",
)


class ShellLexer(RegexLexer):
    """
    A stateful lexer for single bash or fish command lines.

    Both grammars are folded into one lexer since a history entry is a single
    line and the two dialects only clash on command substitution: bash uses
    ``$(...)``, fish uses bare ``(...)``. Use like so:
    ```python
    console = Console()
    syntax = Syntax(command, ShellLexer(), theme=ShellTheme(), line_numbers=False)
    console.print(syntax)
    ```
    """

    name = "Bash/Fish command line"
    aliases = ["histshell"]
    filenames = [".bash_history", "fish_history"]

    flags = re.MULTILINE

    tokens = {
        "_base": [
            (r"\\.", String.Escape),
            # Arithmetic before command substitution, both start with "$("
            (r"\$\(\(", Operator, "arithmetic"),
            (r"\$\(", String.Interpol, "substitution"),
            (r"\(", String.Interpol, "substitution"),
            (words(BASH_KEYWORDS + FISH_KEYWORDS, prefix=r"\b", suffix=r"\b"), Keyword.Reserved),
            (words(BUILTINS, prefix=r"\b", suffix=r"\b"), Name.Builtin),
            (r"\$\{", Name.Variable.Magic, "braced_variable"),
            (r"\$[a-zA-Z0-9_@*#?$!~-]+", Name.Variable),
            (r"'[^']*'", String.Single),
            (r'"', String.Double, "string_double"),
        ],
        "root": [
            (r"#.*$", Comment.Single),
            (r"\s+", Text),
            (r"(&>|&>>|>>?|<<?<?|[0-9]*>&[0-9-]?|\^)", Operator),
            (r"\|\|?|&&|&", Operator),
            (r"[;\[\]{}]", Punctuation),
            (r"\b[0-9]+\b", Number.Integer),
            include("_base"),
            (r"([a-zA-Z0-9_./~+-]+)", Name.Function, "arguments"),
        ],
        "arguments": [
            (r"\n", Text, "#pop"),
            (r"\)", String.Interpol, "#pop:2"),
            (r"[|]", Operator, "#pop"),
            (r"[;&]", Punctuation, "#pop"),
            (r"#.*$", Comment.Single, "#pop"),
            (r"\s+", Text),
            (r"(--?[a-zA-Z0-9][\w-]*)(=?)", bygroups(Name.Attribute, Operator)),
            (r"(&>|&>>|>>?|<<?<?|[0-9]*>&[0-9-]?)", Operator),
            (r"\b[0-9]+\b", Number.Integer),
            include("_base"),
            (r"[^=\s;&|(){}<>\[\]$\"'\\]+", Name.Argument),
            (r"[=<>{}\[\]$]", Operator),
        ],
        "string_double": [
            (r'"', String.Double, "#pop"),
            (r'\\(["$`\\])', String.Escape),
            (r"\$\(", String.Interpol, "substitution"),
            (r"\$\{", Name.Variable.Magic, "braced_variable"),
            (r"\$[a-zA-Z0-9_@*#?$!~-]+", Name.Variable),
            (r'[^"\\$]+', String.Double),
            (r"[\\$]", String.Double),
        ],
        "substitution": [
            (r"\)", String.Interpol, "#pop"),
            include("root"),
        ],
        "arithmetic": [
            (r"\)\)", Operator, "#pop"),
            (r"[-+*/%&|<>!=^]+", Operator.Word),
            (r"\b[0-9]+\b", Number.Integer),
            (r"[a-zA-Z_][a-zA-Z0-9_]*", Name.Variable),
            (r"\s+", Text),
        ],
        "braced_variable": [
            (r"\}", Name.Variable.Magic, "#pop"),
            (r"\$\{", Name.Variable.Magic, "#push"),
            (r"[a-zA-Z_][a-zA-Z0-9_]*", Name.Variable),
            (r"[#%/:|~^]+", Operator),
            (r"[^}]+", Text),
        ],
    }


class ShellTheme(SyntaxTheme):
    """Rich syntax theme for history output, after Monokai Pro."""

    _BLACK = "#2d2a2e"
    _RED = "#ff6188"
    _GREEN = "#a9dc76"
    _YELLOW = "#ffd866"
    _ORANGE = "#fc9867"
    _PURPLE = "#ab9df2"
    _CYAN = "#78dce8"
    _WHITE = "#fcfcfa"
    _COMMENT_GRAY = "#727072"

    default_style = Style(color=_WHITE)

    styles = {
        Name.Function: Style(color=_GREEN, bold=True),  # git, curl
        Name.Attribute: Style(color=_ORANGE),  # --long, -l
        Name.Argument: Style(color=_PURPLE),
        Name.Variable.Magic: Style(color=_PURPLE),  # ${PATH}
        Name.Variable: Style(color=_WHITE),
        Name.Builtin: Style(color=_CYAN, italic=True),
        Number: Style(color=_CYAN),
        Text: Style(color=_WHITE),
        Comment: Style(color=_COMMENT_GRAY, italic=True),
        Keyword: Style(color=_RED, bold=True),
        Operator: Style(color=_RED),
        Operator.Word: Style(color=_RED),
        Punctuation: Style(color=_WHITE),
        String: Style(color=_YELLOW),
        String.Escape: Style(color=_PURPLE),
        String.Interpol: Style(color=_PURPLE, bold=True),
        Error: Style(color=_RED, bold=True),
    }

    @classmethod
    def get_style_for_token(cls, t):
        # Walk up the token hierarchy so String.Single falls back to String
        while t not in cls.styles and t.parent is not None:
            t = t.parent
        return cls.styles.get(t, cls.default_style)

    @classmethod
    def get_background_style(cls):
        # No background: history is printed inline with the terminal's own
        return Style()

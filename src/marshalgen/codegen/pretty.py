"""
Java pretty printer.

Generated code is emitted without indentation; this re-indents it by brace
depth and normalizes blank lines. Braces inside string and char literals and
line comments are ignored.
"""

INDENT = "  "


def _brace_delta(line: str) -> tuple[int, int]:
    """Count opening and closing braces outside literals and comments."""
    opens = closes = 0
    quote: str | None = None
    escaped = False
    for i, char in enumerate(line):
        if quote is not None:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue
        if char in ("'", '"'):
            quote = char
        elif char == "/" and line[i + 1:i + 2] == "/":
            break
        elif char == "{":
            opens += 1
        elif char == "}":
            closes += 1
    return opens, closes


def pretty_print_java(source: str) -> str:
    """Re-indent Java source by brace depth."""
    output: list[str] = []
    depth = 0
    in_comment = False

    for raw_line in source.splitlines():
        line = raw_line.strip()

        if not line:
            # collapse runs of blank lines and drop those right after an opening brace
            if output and output[-1] != "" and not output[-1].endswith("{"):
                output.append("")
            continue

        if in_comment or line.startswith("/*"):
            prefix = INDENT * depth
            if line.startswith("*"):
                prefix += " "
            output.append(prefix + line)
            in_comment = "*/" not in line
            continue

        opens, closes = _brace_delta(line)
        level = depth - 1 if line.startswith("}") else depth

        if line.startswith("}") and output and output[-1] == "":
            output.pop()

        output.append(INDENT * max(level, 0) + line)
        depth = max(depth + opens - closes, 0)

    while output and output[-1] == "":
        output.pop()
    return "\n".join(output) + "\n"

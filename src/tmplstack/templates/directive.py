"""
First-line ``extends`` directive parsing.

A template declares its layout on its very first line, in either of two
spellings (shown with the default delimiters)::

    {{/* extends "layouts/base.html" */}}
    {{ extends "layouts/base.html" }}

Only that first line is inspected. When it matches, the directive is
removed from the body along with its line, unless other text follows it on
that line; otherwise the body is returned untouched.
"""
import logging
import re
from typing import Tuple

logger = logging.getLogger(__name__)

DEFAULT_LEFT = "{{"
DEFAULT_RIGHT = "}}"


def normalize_name(name: str) -> str:
    """Normalize a template name to a forward-slash logical name."""
    name = name.replace("\\", "/")
    while name.startswith("./"):
        name = name[2:]
    return name


class DirectiveParser:
    """Extracts the layout name from the first line of a template."""

    def __init__(self, left: str = DEFAULT_LEFT, right: str = DEFAULT_RIGHT):
        self.left = left or DEFAULT_LEFT
        self.right = right or DEFAULT_RIGHT
        left_re = re.escape(self.left.encode())
        right_re = re.escape(self.right.encode())
        self.pattern = re.compile(
            rb"^\s*" + left_re
            + rb"""(?:/\*\s*extends\s+(?P<q1>["'])(?P<path>.+?)(?P=q1)\s*\*/"""
            + rb"""|\s*extends\s+(?P<q2>["'])(?P<p2>.+?)(?P=q2)\s*)"""
            + right_re + rb"(?P<rest>.*)$"
        )
        self.min_length = len(self.left) + len(self.right) + len('extends ""')

    def split(self, raw: bytes) -> Tuple[str, bytes, int]:
        """
        Split a raw template into its layout name, body and line offset.

        Text following the directive on the first line is kept as the first
        line of the body. Otherwise the directive line is dropped and the
        body starts one line into the file.

        Args:
            raw: Raw template file contents

        Returns:
            Tuple of (layout name or "", body bytes, lines removed from the top)
        """
        if len(raw) < self.min_length:
            return "", raw, 0

        newline = raw.find(b"\n")
        if newline == -1:
            first_line, rest = raw, b""
        else:
            first_line, rest = raw[:newline], raw[newline + 1:]

        match = self.pattern.match(first_line.rstrip(b"\r"))
        if match is None:
            return "", raw, 0

        path = match.group("path") or match.group("p2")
        layout = normalize_name(path.decode("utf-8", errors="replace"))
        if match.group("rest").strip():
            return layout, raw[match.start("rest"):], 0
        return layout, rest, 1

    def parse(self, raw: bytes) -> Tuple[str, bytes]:
        """Return ``(layout name or "", body)`` for ``raw``."""
        layout, body, _ = self.split(raw)
        return layout, body


# Default-delimiter parser, built at import time.
DEFAULT_PARSER = DirectiveParser()


def parse_directive(raw: bytes, parser: DirectiveParser = None) -> Tuple[str, bytes]:
    """Parse the extends directive of ``raw`` with ``parser`` (default delimiters if omitted)."""
    return (parser or DEFAULT_PARSER).parse(raw)

"""
lint.py

Responsibility: Style and terminology lint for the Markdown corpus.

The styleguide file selects rules and lists preferred spellings of product names:

    rules:
      line-length: {max: 120}
      heading-increment: true
      no-trailing-spaces: true
      no-hard-tabs: true
      single-h1: true
    terms:
      - use: GitHub
        instead_of: [Github, Git Hub]
    ignore:
      - "drafts/*"

Fenced code, inline code and link targets are never checked for terms. Table rows and
lines without spaces (long URLs) are exempt from `line-length`.
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_STYLEGUIDE = "styleguide.yml"
DEFAULT_LINE_LENGTH = 120

RULES = ("line-length", "heading-increment", "no-trailing-spaces", "no-hard-tabs", "single-h1")

_HEADING_RE = re.compile(r"^ {0,3}(#{1,6})(?:\s+|$)")
_FENCE_RE = re.compile(r"^\s{0,3}(`{3,}|~{3,})")
_CODE_SPAN_RE = re.compile(r"(`+)(.+?)\1")
_LINK_TARGET_RE = re.compile(r"\]\([^)]*\)")
_URL_RE = re.compile(r"<?https?://[^\s>)]+>?")


class StyleguideError(ValueError):
    pass


@dataclass(frozen=True)
class Term:
    use: str
    instead_of: tuple[str, ...]
    patterns: tuple[re.Pattern[str], ...] = field(default=(), compare=False, repr=False)


@dataclass(frozen=True)
class Styleguide:
    rules: dict[str, dict[str, Any]]
    terms: tuple[Term, ...] = ()
    ignore: tuple[str, ...] = ()

    def enabled(self, rule: str) -> bool:
        return rule in self.rules


@dataclass(frozen=True, order=True)
class LintIssue:
    src_path: str
    line: int
    rule: str
    message: str

    def __str__(self) -> str:
        return f"{self.src_path}:{self.line}: [{self.rule}] {self.message}"


def _term_pattern(word: str) -> re.Pattern[str]:
    return re.compile(r"(?<![\w./-])" + re.escape(word) + r"(?![\w-]|\.\w)")


def _parse_rules(raw: Any) -> dict[str, dict[str, Any]]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise StyleguideError("`rules` must be a mapping of rule name to true/false/options.")
    rules: dict[str, dict[str, Any]] = {}
    for name, value in raw.items():
        if name not in RULES:
            raise StyleguideError(f"Unknown lint rule: {name} (known: {', '.join(RULES)})")
        if value is False or value is None:
            continue
        if value is True:
            options: dict[str, Any] = {}
        elif isinstance(value, dict):
            options = dict(value)
        else:
            raise StyleguideError(f"Rule `{name}` must be true, false or a mapping of options.")
        if name == "line-length":
            limit = options.get("max", DEFAULT_LINE_LENGTH)
            if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
                raise StyleguideError("`line-length.max` must be a positive integer.")
            options = {"max": limit}
        elif options:
            raise StyleguideError(f"Rule `{name}` takes no options.")
        rules[name] = options
    return rules


def _parse_terms(raw: Any) -> tuple[Term, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise StyleguideError("`terms` must be a list.")
    terms: list[Term] = []
    for entry in raw:
        if not isinstance(entry, dict) or not isinstance(entry.get("use"), str):
            raise StyleguideError(f"Each term needs a `use` string: {entry!r}")
        wrong = entry.get("instead_of")
        if isinstance(wrong, str):
            wrong = [wrong]
        if not isinstance(wrong, list) or not wrong or not all(isinstance(w, str) and w for w in wrong):
            raise StyleguideError(f"Term `{entry['use']}` needs a non-empty `instead_of` list.")
        if entry["use"] in wrong:
            raise StyleguideError(f"Term `{entry['use']}` lists itself under `instead_of`.")
        terms.append(
            Term(
                use=entry["use"],
                instead_of=tuple(wrong),
                patterns=tuple(_term_pattern(w) for w in wrong),
            )
        )
    return tuple(terms)


def parse_styleguide(data: Any) -> Styleguide:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise StyleguideError("Styleguide must be a mapping/object at the top level.")
    unknown = sorted(set(data) - {"rules", "terms", "ignore"})
    if unknown:
        raise StyleguideError(f"Unknown styleguide keys: {', '.join(unknown)}")
    ignore = data.get("ignore") or []
    if not isinstance(ignore, list):
        raise StyleguideError("`ignore` must be a list of glob patterns.")
    return Styleguide(
        rules=_parse_rules(data.get("rules")),
        terms=_parse_terms(data.get("terms")),
        ignore=tuple(str(p) for p in ignore),
    )


def load_styleguide(path: str | Path) -> Styleguide:
    p = Path(path)
    if not p.exists():
        raise StyleguideError(f"Styleguide file does not exist: {p}")
    try:
        data = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise StyleguideError(f"Failed to parse styleguide {p}: {e}") from e
    return parse_styleguide(data)


def _prose(line: str) -> str:
    line = _CODE_SPAN_RE.sub(" ", line)
    line = _LINK_TARGET_RE.sub("]", line)
    return _URL_RE.sub(" ", line)


def _body_lines(text: str) -> list[tuple[int, str]]:
    """Number lines from 1, skipping any front matter block."""
    lines = text.splitlines()
    start = 0
    if lines and lines[0].strip() == "---":
        for i in range(1, len(lines)):
            if lines[i].strip() == "---":
                start = i + 1
                break
    return [(i + 1, lines[i]) for i in range(start, len(lines))]


def lint_text(src_path: str, text: str, guide: Styleguide) -> list[LintIssue]:
    issues: list[LintIssue] = []

    def report(line: int, rule: str, message: str) -> None:
        issues.append(LintIssue(src_path=src_path, line=line, rule=rule, message=message))

    fence: str | None = None
    last_level = 0
    seen_h1 = False
    limit = guide.rules.get("line-length", {}).get("max")

    for number, line in _body_lines(text):
        m = _FENCE_RE.match(line)
        if m:
            marker = m.group(1)
            if fence is None:
                fence = marker
            elif marker[0] == fence[0] and len(marker) >= len(fence):
                fence = None
            continue
        if fence is not None:
            continue

        if guide.enabled("no-trailing-spaces") and line != line.rstrip():
            report(number, "no-trailing-spaces", "Trailing whitespace.")
        if guide.enabled("no-hard-tabs") and "\t" in line:
            report(number, "no-hard-tabs", "Hard tab character.")
        if limit is not None and len(line) > limit:
            stripped = line.strip()
            if not stripped.startswith("|") and " " in stripped:
                report(number, "line-length", f"Line is {len(line)} characters long (max {limit}).")

        h = _HEADING_RE.match(line)
        if h:
            level = len(h.group(1))
            if guide.enabled("heading-increment") and last_level and level > last_level + 1:
                report(number, "heading-increment", f"Heading jumps from h{last_level} to h{level}.")
            if level == 1:
                if guide.enabled("single-h1") and seen_h1:
                    report(number, "single-h1", "More than one top-level heading.")
                seen_h1 = True
            last_level = level

        if guide.terms:
            prose = _prose(line)
            for term in guide.terms:
                for wrong, pattern in zip(term.instead_of, term.patterns):
                    if pattern.search(prose):
                        report(number, "terms", f"Use '{term.use}' instead of '{wrong}'.")
    return issues


def lint_docs(docs_dir: str | Path, sources: list[str], guide: Styleguide) -> list[LintIssue]:
    """Lint every Markdown source not matched by the styleguide's `ignore` globs."""
    root = Path(docs_dir)
    issues: list[LintIssue] = []
    for src in sources:
        if any(fnmatch.fnmatchcase(src, pattern) for pattern in guide.ignore):
            continue
        issues.extend(lint_text(src, (root / src).read_text(encoding="utf-8"), guide))
    issues.sort()
    return issues

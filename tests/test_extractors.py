"""Tests for repoindex.extractors."""

from __future__ import annotations

from textwrap import dedent

import pytest

from repoindex.extractors import (
    CodeUnit,
    extract_go,
    extract_markdown,
    extract_python,
    extract_ts_js,
    extract_units,
    mask_comments_and_strings,
)


def _summary(units: list[CodeUnit]) -> list[tuple[str, str, int, int, bool]]:
    return [(u.type, u.name, u.start_line, u.end_line, u.exported) for u in units]


def test_python_units_include_methods_and_decorators() -> None:
    source = dedent(
        '''
        import functools


        @functools.cache
        def cached(value: int) -> int:
            """Return value."""
            return value


        class _Hidden:
            def visible(self):
                pass


        class Public(Base):
            async def fetch(self, url):
                return url

            def _private(self):
                pass
        '''
    ).lstrip()

    units = extract_python(source)

    assert _summary(units) == [
        ("function", "cached", 4, 7, True),
        ("class", "_Hidden", 10, 12, False),
        ("method", "_Hidden.visible", 11, 12, False),
        ("class", "Public", 15, 20, True),
        ("method", "Public.fetch", 16, 17, True),
        ("method", "Public._private", 19, 20, False),
    ]
    assert units[0].signature == "def cached(value: int) -> int"
    assert units[0].docstring == "Return value."
    assert units[3].signature == "class Public(Base)"
    assert units[4].signature == "async def fetch(self, url)"


def test_python_syntax_errors_propagate() -> None:
    with pytest.raises(SyntaxError):
        extract_units("python", "def broken(:\n")


def test_typescript_units() -> None:
    source = dedent(
        """
        import { readFile } from "fs";

        export interface Options {
          path: string;
        }

        export type Handler = (value: string) => void;

        export class Loader {
          private cache = new Map();

          constructor(private options: Options) {}

          async load(name: string): Promise<string> {
            if (this.cache.has(name)) {
              return this.cache.get(name);
            }
            return readFile(name);
          }
        }

        function helper() {
          const text = "}";
          return text;
        }

        export const parse = (input: string) => {
          return input.trim();
        };

        export const VERSION = "1.0";
        """
    ).lstrip()

    units = extract_ts_js(source)

    assert _summary(units) == [
        ("interface", "Options", 3, 5, True),
        ("type", "Handler", 7, 7, True),
        ("class", "Loader", 9, 20, True),
        ("method", "Loader.constructor", 12, 12, True),
        ("method", "Loader.load", 14, 19, True),
        ("function", "helper", 22, 25, False),
        ("function", "parse", 27, 29, True),
        ("variable", "VERSION", 31, 31, True),
    ]
    assert units[5].signature == "function helper()"


def test_javascript_uses_same_extractor() -> None:
    units = extract_units("javascript", "export default function main(argv) {\n  return argv;\n}\n")

    assert _summary(units) == [("function", "main", 1, 3, True)]


def test_go_units() -> None:
    source = dedent(
        """
        package store

        // Store keeps values.
        type Store struct {
        	items map[string]string
        }

        type Reader interface {
        	Read(key string) string
        }

        type ID string

        func New() *Store {
        	return &Store{items: map[string]string{}}
        }

        func (s *Store) Get(key string) string {
        	return s.items[key]
        }

        func helper() {}
        """
    ).lstrip()

    units = extract_go(source)

    assert _summary(units) == [
        ("struct", "Store", 4, 6, True),
        ("interface", "Reader", 8, 10, True),
        ("type", "ID", 12, 12, True),
        ("function", "New", 14, 16, True),
        ("method", "Store.Get", 18, 20, True),
        ("function", "helper", 22, 22, False),
    ]
    assert units[4].signature == "func (s *Store) Get(key string)"


def test_markdown_sections_skip_code_fences() -> None:
    source = dedent(
        """
        Intro text is ignored.

        # Title

        Welcome.

        ```bash
        # not a heading
        ```

        ## Usage ##

        Run it.
        """
    ).lstrip()

    units = extract_markdown(source)

    assert _summary(units) == [
        ("documentation", "Title", 3, 10, False),
        ("documentation", "Usage", 11, 13, False),
    ]


def test_unknown_language_has_no_units() -> None:
    assert extract_units("cobol", "IDENTIFICATION DIVISION.") == []


def test_masking_preserves_layout() -> None:
    source = 'const a = "{"; // }\n/* {\n} */ let b = `x\n{`;\nconst c = \'unterminated'

    masked = mask_comments_and_strings(source)

    assert len(masked) == len(source)
    assert masked.count("\n") == source.count("\n")
    assert "{" not in masked
    assert "}" not in masked
    assert masked.startswith('const a = " ";')

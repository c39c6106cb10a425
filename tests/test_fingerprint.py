from __future__ import annotations

import pytest

from latexsvg.core.fingerprint import (
    DEFAULT_PREAMBLE,
    Fingerprinter,
    fingerprint_text,
    is_fingerprint,
)


def test_normalize_prefixes_preamble_and_strips_body() -> None:
    fingerprinter = Fingerprinter()

    assert fingerprinter.normalize("  \n$x$\n\n") == f"{DEFAULT_PREAMBLE}\n$x$"


def test_normalize_without_preamble_returns_body() -> None:
    assert Fingerprinter(preamble="").normalize("\t$x$ ") == "$x$"


def test_compute_matches_hash_of_normalized_text() -> None:
    fingerprinter = Fingerprinter()
    source = r"\frac{1}{2}"

    assert fingerprinter.compute(source) == fingerprint_text(fingerprinter.normalize(source))
    assert is_fingerprint(fingerprinter.compute(source))


def test_whitespace_outside_snippet_does_not_change_fingerprint() -> None:
    fingerprinter = Fingerprinter()

    assert fingerprinter.compute("$a$") == fingerprinter.compute("\n\n  $a$  \n")
    assert fingerprinter.compute("$a$") != fingerprinter.compute("$a $ ")


def test_preamble_is_part_of_the_fingerprint() -> None:
    plain = Fingerprinter()
    with_package = Fingerprinter(preamble=DEFAULT_PREAMBLE + "\n\\usepackage{amsmath}")

    assert plain.compute("$a$") != with_package.compute("$a$")


def test_normalize_rejects_non_text() -> None:
    with pytest.raises(TypeError):
        Fingerprinter().normalize(b"$x$")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "value",
    ["", "abc", "A" * 64, "g" * 64, "0" * 63, None, 42],
)
def test_is_fingerprint_rejects_malformed_values(value) -> None:
    assert not is_fingerprint(value)

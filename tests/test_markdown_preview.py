from __future__ import annotations

from latexsvg.adapters.markdown import (
    error_fragment,
    render_preview,
    split_front_matter,
    svg_fragment,
)
from latexsvg.cache.store import Artifact
from latexsvg.core.exceptions import RenderError


DOCUMENT = """\
---
title: Demo
tags: [math]
---
# Pythagoras

```latex
$a^2 + b^2 = c^2$
```

```python
print("kept as code")
```
"""


def test_split_front_matter_returns_metadata_and_body() -> None:
    metadata, body = split_front_matter(DOCUMENT)

    assert metadata == {"title": "Demo", "tags": ["math"]}
    assert body.startswith("# Pythagoras")


def test_split_front_matter_without_metadata_is_identity() -> None:
    text = "# Title\n\n---\n"

    assert split_front_matter(text) == ({}, text)


def test_invalid_front_matter_is_kept_in_body() -> None:
    text = "---\n: [unbalanced\n---\nbody\n"

    assert split_front_matter(text) == ({}, text)


def test_svg_fragment_drops_xml_declaration() -> None:
    artifact = Artifact(fingerprint="f" * 64, data=b'<?xml version="1.0"?>\n<svg/>')

    expected = f'<div class="latexsvg" data-fingerprint="{"f" * 64}"><svg/></div>'
    assert svg_fragment(artifact) == expected


def test_error_fragment_escapes_compiler_output() -> None:
    error = RenderError("failed", stderr="<bad> & worse")

    expected = '<pre class="latexsvg-error">failed\n\n&lt;bad&gt; &amp; worse</pre>'
    assert error_fragment(error) == expected


def test_render_preview_inlines_svg(coordinator, pipeline) -> None:
    preview = render_preview(DOCUMENT, coordinator, "demo.md")

    fingerprint = coordinator.fingerprint("$a^2 + b^2 = c^2$")
    assert preview.front_matter["title"] == "Demo"
    assert not preview.errors
    assert pipeline.calls == [fingerprint]
    assert f'data-fingerprint="{fingerprint}"' in preview.html
    assert "<svg" in preview.html
    assert "a^2 + b^2" not in preview.html
    assert "language-python" in preview.html
    assert "<h1" in preview.html
    assert coordinator.references(fingerprint) == {"demo.md"}


def test_render_preview_reports_failures_in_place(coordinator, pipeline) -> None:
    pipeline.fail = True

    preview = render_preview(DOCUMENT, coordinator, "demo.md")

    assert len(preview.errors) == 1
    assert isinstance(preview.errors[0].error, RenderError)
    assert preview.errors[0].snippet.start_line == 2
    assert 'class="latexsvg-error"' in preview.html
    assert "Undefined control sequence" in preview.html


def test_render_preview_without_snippets(coordinator, pipeline) -> None:
    preview = render_preview("plain *text*", coordinator, "plain.md")

    assert preview.outcomes == []
    assert "<em>text</em>" in preview.html
    assert pipeline.calls == []


def test_tab_indented_fence_does_not_shift_fragments(coordinator, pipeline) -> None:
    text = "\t```latex\n\\fail-a\n\t```\n\n```latex\nb\n```\n"

    preview = render_preview(text, coordinator, "shift.md")

    assert [outcome.snippet.source for outcome in preview.outcomes] == ["b"]
    assert f'data-fingerprint="{coordinator.fingerprint("b")}"' in preview.html
    assert coordinator.fingerprint("\\fail-a") not in preview.html
    assert pipeline.calls == [coordinator.fingerprint("b")]


def test_fragments_follow_their_source(coordinator) -> None:
    body = "\\begin{array}{c}\n\tx \\\\\n  \n\\end{array}"
    text = f"```latex\n{body}\n```\n\n```latex\ny\n```\n\n```latex\n{body}\n```\n"

    preview = render_preview(text, coordinator, "order.md")

    tabbed = f'data-fingerprint="{coordinator.fingerprint(body)}"'
    plain = f'data-fingerprint="{coordinator.fingerprint("y")}"'
    assert preview.html.count(tabbed) == 2
    assert preview.html.count(plain) == 1
    assert preview.html.index(tabbed) < preview.html.index(plain) < preview.html.rindex(tabbed)
    assert "<code" not in preview.html

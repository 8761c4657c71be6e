from __future__ import annotations

from typing import TYPE_CHECKING

from .annotations import Annotation, AnnotationList
from .config import Config
from .report import error_annotation
from .tokens import render

if TYPE_CHECKING:
    from .decl import Declaration


def _full_annotation(annotation: Annotation) -> str:
    if annotation.body is not None:
        return f"#[{deferred_directive(annotation)}]"
    return f"#[{annotation.meta_text}]"


def deferred_directive(annotation: Annotation) -> str:
    """Re-emit a nested directive in its own reserved form.

    The host expands the surrounding native form first; the re-emitted
    directive is then handed back to this transform as a fresh invocation.
    """
    body = annotation.body
    items = [_full_annotation(item) for item in body.annotations]
    if items:
        args = ", ".join([body.condition_text, *items])
    else:
        args = f"{body.condition_text},"
    return f"{annotation.path_text}({args})"


def _nested_meta(annotation: Annotation) -> str:
    if annotation.body is not None:
        return deferred_directive(annotation)
    return annotation.meta_text


def rewrite_annotation(annotation: Annotation, config: Config) -> str:
    if annotation.error is not None:
        return error_annotation(annotation.error, config, annotation.leading)
    if annotation.body is None:
        return render(annotation.tokens)

    metas = [_nested_meta(item) for item in annotation.body.annotations]
    if metas:
        args = ", ".join([annotation.body.condition_text, *metas])
    else:
        args = f"{annotation.body.condition_text},"
    bang = "!" if annotation.inner else ""
    return f"{annotation.leading}#{bang}[{config.native_name}({args})]"


def rewrite_annotations(annotations: AnnotationList, config: Config) -> str:
    return "".join(rewrite_annotation(annotation, config) for annotation in annotations)


def rewrite_declaration(decl: Declaration, config: Config) -> list[str]:
    return [rewrite_annotations(point.annotations, config) for point in decl.attachment_points()]

"""
Automation steps and the pipeline builder.

A pipeline is an ordered tuple of `ActionStep` values. Steps are plain data;
`CaptureExecutor` maps each one onto a browser call and runs them strictly in
sequence. `build_pipeline` is deterministic and does no I/O.
"""
from dataclasses import dataclass, field
from typing import List, Mapping, Tuple

from webrender.components.renderer.models import RenderRequest


class ActionStep:
    """Marker base class for pipeline steps."""
    __slots__ = ()


@dataclass(frozen=True)
class EnableHeaderInterception(ActionStep):
    pass


@dataclass(frozen=True)
class SetHeaders(ActionStep):
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Navigate(ActionStep):
    url: str


@dataclass(frozen=True)
class EvaluateScript(ActionStep):
    source: str


@dataclass(frozen=True)
class Sleep(ActionStep):
    seconds: float


@dataclass(frozen=True)
class StopLoading(ActionStep):
    pass


@dataclass(frozen=True)
class CaptureDOM(ActionStep):
    selector: str = ":root"


@dataclass(frozen=True)
class CaptureScreenshot(ActionStep):
    full_page: bool = False


@dataclass(frozen=True)
class CapturePDF(ActionStep):
    display_header_footer: bool = True


def build_pipeline(request: RenderRequest, navigate: bool) -> Tuple[ActionStep, ...]:
    """
    Builds the ordered steps for one capture attempt.

    Args:
        request (RenderRequest): The render job.
        navigate (bool): False for the fallback attempt, which captures whatever
            the page currently shows instead of loading the URL again.

    Returns:
        Tuple[ActionStep, ...]: Header steps (only when headers were requested),
        the navigation block (only when `navigate`), a DOM capture and exactly
        one output capture. PDF output takes precedence over `full_page`.
    """
    steps: List[ActionStep] = []

    if request.headers:
        steps.append(EnableHeaderInterception())
        steps.append(SetHeaders(dict(request.headers)))

    if navigate:
        steps.append(Navigate(request.url))
        if request.script:
            steps.append(EvaluateScript(request.script))
        if request.delay > 0:
            steps.append(Sleep(request.delay))
        steps.append(StopLoading())

    steps.append(CaptureDOM())

    if request.as_pdf:
        steps.append(CapturePDF(display_header_footer=True))
    elif request.full_page:
        steps.append(CaptureScreenshot(full_page=True))
    else:
        steps.append(CaptureScreenshot(full_page=False))

    return tuple(steps)

"""OpenTelemetry tracing for LLMGate.

Provider calls and tool dispatches each get a span when tracing is enabled;
otherwise the context managers yield a no-op span and cost nothing.

Configuration:
    - LLMGATE_ENABLE_TRACING: Enable/disable tracing (default: False)
    - LLMGATE_OTEL_EXPORTER_ENDPOINT: OTLP/HTTP endpoint receiving spans

Example:
    >>> from llmgate.telemetry import configure_tracing
    >>> configure_tracing()
"""

from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode

from llmgate._version import get_version
from llmgate.config import get_settings
from llmgate.logging_config import get_logger

logger = get_logger(__name__)

_tracer = None
_tracing_enabled = False


class NoOpSpan:
    def set_attribute(self, *args, **kwargs):
        pass

    def set_status(self, *args, **kwargs):
        pass

    def record_exception(self, *args, **kwargs):
        pass


def configure_tracing() -> None:
    """Configure the OpenTelemetry SDK from settings.

    Safe to call more than once; does nothing when tracing is disabled.
    """
    global _tracer, _tracing_enabled

    current = get_settings()
    if not current.enable_tracing:
        logger.info("OpenTelemetry tracing is disabled")
        return

    try:
        resource = Resource.create({"service.name": "llmgate", "service.version": get_version()})
        provider = TracerProvider(resource=resource)

        if current.otel_exporter_endpoint:
            exporter = OTLPSpanExporter(endpoint=current.otel_exporter_endpoint, headers={})
            provider.add_span_processor(BatchSpanProcessor(exporter))
            logger.info(f"OTLP exporter configured with endpoint: {current.otel_exporter_endpoint}")

        trace.set_tracer_provider(provider)
        _tracer = trace.get_tracer("llmgate")
        _tracing_enabled = True
        logger.info("OpenTelemetry tracing configured successfully")
    except Exception as e:
        logger.error(f"Failed to configure tracing: {e}")
        _tracing_enabled = False


def is_tracing_enabled() -> bool:
    return _tracing_enabled


@contextmanager
def _span(name: str, attributes: dict[str, Any]):
    if not _tracing_enabled or _tracer is None:
        yield NoOpSpan()
        return

    with _tracer.start_as_current_span(name, attributes=attributes) as span:
        try:
            yield span
        except BaseException as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise


def trace_provider_call(provider: str, model: str, message_count: int, tool_count: int = 0, **attributes: Any):
    """Span around one outbound provider call.

    Example:
        >>> with trace_provider_call("openai", "gpt-4o-mini", 3) as span:
        ...     completion = await client.send(conversation)
    """
    return _span(
        "llm.completion",
        {
            "llm.provider": provider,
            "llm.model": model,
            "llm.messages_count": message_count,
            "llm.tools_available": tool_count,
            **attributes,
        },
    )


def trace_tool_call(tool_name: str, call_id: str, **attributes: Any):
    """Span around one tool dispatch."""
    return _span(f"tool.{tool_name}", {"tool.name": tool_name, "tool.call_id": call_id, **attributes})


def set_span_attributes(span: Any, **attributes: Any) -> None:
    """Set multiple attributes on a span, ignoring values the SDK rejects."""
    if not _tracing_enabled:
        return

    for key, value in attributes.items():
        try:
            if isinstance(value, (dict, list)):
                value = str(value)
            span.set_attribute(key, value)
        except Exception as e:
            logger.debug(f"Failed to set span attribute {key}: {e}")


def record_token_usage(span: Any, usage: dict[str, int]) -> None:
    """Record token counts (prompt, completion, total) on a span."""
    set_span_attributes(
        span,
        **{
            "llm.tokens.prompt": usage.get("prompt", 0),
            "llm.tokens.completion": usage.get("completion", 0),
            "llm.tokens.total": usage.get("total", 0),
        },
    )

"""Cross-cutting request instrumentation.

structlog JSON logging, session tagging, OpenTelemetry tracing and the
background profiler bootstrap. Handles are built once at startup and passed
to the app factory; nothing here installs process-wide providers.
"""

"""Pure mapping helpers: identifiers, attributes, timing and run traces.

Nothing in this package performs network I/O except through the `JobFetcher`
handed to `RunTraceBuilder`.
"""

"""gh-action-trace: traces for GitHub Actions runs.

Retrieves workflow, run and job metadata from the GitHub API and emits one
OpenTelemetry trace per run (a root span for the run, a child span per job)
so CI timing and failures can be inspected in any trace viewer.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]

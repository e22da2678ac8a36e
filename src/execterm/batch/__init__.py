"""One-shot (non-interactive) execution over HTTP."""

from execterm.batch.http_runner import BatchRunError, HttpBatchRunner

__all__ = ["BatchRunError", "HttpBatchRunner"]

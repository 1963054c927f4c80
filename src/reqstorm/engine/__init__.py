"""Concurrent request engine: job source, worker pool and cancellation."""

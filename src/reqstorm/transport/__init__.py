"""HTTP transport shared by the worker pool."""

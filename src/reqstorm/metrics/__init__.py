"""Result aggregation, latency digest and summary models."""

"""
Core modules for the AI gateway.

This package contains admission control, model routing, the routine cache,
usage telemetry and the batch orchestration path.
"""

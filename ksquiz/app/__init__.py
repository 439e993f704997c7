"""Application layer: custom mixes, engine orchestration, CLI and tracing."""

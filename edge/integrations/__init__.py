"""External service clients."""

from edge.integrations.text_client import (
    GenerationConfig,
    GenerativeTextClient,
    TextGenerator,
    build_phase_configs,
)

__all__ = ["GenerationConfig", "GenerativeTextClient", "TextGenerator", "build_phase_configs"]

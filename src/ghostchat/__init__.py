"""GhostChat - License-tiered chat core with web context and AI providers.

Provides the session core behind the embeddable GhostChat widget: license
validation, tier enforcement, page context ingestion and provider dispatch.

Usage:
    # Interactive chat in the terminal
    ghostchat chat --config widget.yaml

    # Print the context corpus a page would produce
    ghostchat extract https://example.com/faq --mode faq

    # Check which tier a license key resolves to
    ghostchat license GC-XXXX-XXXX

For installation:
    pip install ghostchat
    pip install "ghostchat[test]"      # + test tooling
"""

__version__ = "1.0.0"

__all__ = [
    "__version__",
]

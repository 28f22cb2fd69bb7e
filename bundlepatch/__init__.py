"""bundlepatch: versioned literal patching of generated application artifacts."""

__version__ = "0.3.0"

"""trackforge - bulk AI music generation orchestrator."""

__version__ = "0.1.0"
__all__ = ["generate_tracks"]


def __getattr__(name: str):  # type: ignore[no-untyped-def]
    if name == "generate_tracks":
        from .api import generate_tracks

        return generate_tracks
    raise AttributeError(f"module 'trackforge' has no attribute {name!r}")

# Lazy imports to avoid circular dependencies.
# state/smoother/gripper_sync are leaf modules imported by the interface
# layer; engine/loop pull in config and messages.


def __getattr__(name):
    if name in ("FollowerEngine", "EngineState"):
        from src.control import engine
        return getattr(engine, name)
    if name == "ControlLoop":
        from src.control.loop import ControlLoop
        return ControlLoop
    if name == "ControlState":
        from src.control.state import ControlState
        return ControlState
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["FollowerEngine", "EngineState", "ControlLoop", "ControlState"]

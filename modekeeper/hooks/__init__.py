"""Hook event model and the stdin/stdout bridge (``modekeeper.hooks.bridge``)."""
from modekeeper.hooks.events import HookName, parse_event, resolve_hook_name

__all__ = ["HookName", "parse_event", "resolve_hook_name"]

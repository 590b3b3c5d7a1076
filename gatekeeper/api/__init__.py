from gatekeeper.api.app import JsonViewRenderer, StarletteRouter, install_guards

__all__ = ["JsonViewRenderer", "StarletteRouter", "install_guards"]

"""auth/ -- Authentication and authorization core for Quill.

Layer rule: auth/ imports only stdlib + third-party libraries, plus
core.config for type hints. Settings are injected, never read as globals.
api/ imports from auth/, not the other way around.
"""

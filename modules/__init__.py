"""Map Workbench Modules

This package contains the engine modules of the Map Workbench. Each module builds
on the shared framework core in ``src`` for configuration, logging and errors.
"""

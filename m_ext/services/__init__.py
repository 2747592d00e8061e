"""
M Extension Engine - Services Module

Engine orchestration, configuration, earner administration and the
collaborator interfaces the engine consumes. Import submodules directly.
"""

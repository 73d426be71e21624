"""Service layer: plugin operations returning ServiceResult.

Services may import from config and plugins.
They must never import from commands or output.
"""

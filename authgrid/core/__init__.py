"""Core protocol components.

Nothing is re-exported here: models import ``authgrid.core.key_codec`` and
an eager import of the protocol would be circular. Import submodules
directly, e.g. ``from authgrid.core.protocol import AuthProtocol``.
"""

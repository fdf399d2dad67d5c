"""
Configuration loading for cmt.

Defaults, the global ``~/.config/cmt/config.json`` and the project
``.cmt.json`` are merged by :func:`load_config`. See
:mod:`cmt.config.loader` for implementation details.
"""

from .loader import ConfigError, init_config, load_config  # noqa: F401

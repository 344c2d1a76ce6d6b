"""Main settings file.

Settings are split into components, see ``components/``.
Loading order matters: later components can override earlier ones.
"""

from split_settings.tools import include

include(
    'components/common.py',
    'components/logging.py',
    'components/ftp.py',
)

"""Remote FTP store settings."""

from server.settings.components import BASE_DIR, config

# Connection parameters, read once per client construction
FTP_HOST = config('FTP_HOST', default='localhost')
FTP_PORT = config('FTP_PORT', cast=int, default=21)
FTP_USER = config('FTP_USER', default='anonymous')
FTP_PASSWORD = config('FTP_PASSWORD', default='')
FTP_TIMEOUT = config('FTP_TIMEOUT', cast=float, default=30)
FTP_PASSIVE = config('FTP_PASSIVE', cast=bool, default=True)
FTP_CHUNK_SIZE = config('FTP_CHUNK_SIZE', cast=int, default=8192)

# Local staging directory for downloads (created on demand)
FILES_DOWNLOAD_TEMP_DIR = BASE_DIR.joinpath(
    config('FILES_DOWNLOAD_TEMP_DIR', default='temp'),
)

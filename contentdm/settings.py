import logging
import os

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

PAGE_SIZE = int(os.environ.get('CONTENTDM_PAGE_SIZE', 1000))
TOKEN_MODE = os.environ.get('CONTENTDM_TOKEN_MODE', 'server')
METADATA_PREFIX = os.environ.get('CONTENTDM_METADATA_PREFIX', 'qdc')

OAI_PATH = os.environ.get('CONTENTDM_OAI_PATH', 'cgi-bin/oai.exe')
ADMIN_FIELDS_PATH = os.environ.get(
    'CONTENTDM_ADMIN_FIELDS_PATH',
    'cgi-bin/admin/fields.exe?CISOROOT=/{collection}'
)

HTTP_TIMEOUT = int(os.environ.get('CONTENTDM_HTTP_TIMEOUT', 60))
HTTP_RETRIES = int(os.environ.get('CONTENTDM_HTTP_RETRIES', 0))
USER_AGENT = os.environ.get(
    'CONTENTDM_USER_AGENT', 'contentdm-harvester metadata fetcher')

ADMIN_USER = os.environ.get('CONTENTDM_ADMIN_USER')
ADMIN_PASSWORD = os.environ.get('CONTENTDM_ADMIN_PASSWORD')

for key, value in os.environ.items():
    if key.startswith('CONTENTDM_') and 'PASSWORD' not in key:
        logger.debug(f"{key}={value}")

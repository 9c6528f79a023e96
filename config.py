import os, json, logging, tempfile
from pydantic import ValidationError as ModelError
from models import AgentConfig

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    return value.strip().lower() in {'1', 'true', 'yes', 'on'}


# Loopback only. The origin check in security.py is the real boundary, do not widen this casually.
HOST = os.environ.get('PRINT_AGENT_HOST', '127.0.0.1')
PORT = int(os.environ.get('PRINT_AGENT_PORT', '9123'))
# Directory shared with the tray application: config.json and agent.log live here.
AGENT_DIR = os.environ.get('PRINT_AGENT_DIR',
                           os.path.join(os.environ.get('APPDATA', os.path.expanduser('~')), 'LocalPrintAgent'))
CONFIG_PATH = os.environ.get('PRINT_AGENT_CONFIG', os.path.join(AGENT_DIR, 'config.json'))
LOG_PATH = os.environ.get('PRINT_AGENT_LOG', os.path.join(AGENT_DIR, 'agent.log'))
# Scratch directory for html render temp files, shared by concurrent requests.
TEMP_DIR = os.environ.get('PRINT_AGENT_TEMP_DIR', os.path.join(tempfile.gettempdir(), 'LocalPrintAgent'))
# Optional explicit msedge.exe path, probed before the standard install locations.
BROWSER_PATH = os.environ.get('PRINT_AGENT_BROWSER', '')
# Require X-Print-Token on /print and /printers in addition to the origin check.
REQUIRE_TOKEN = _env_bool('PRINT_AGENT_REQUIRE_TOKEN', False)
TOKEN_HEADER = 'X-Print-Token'
# Rasterisation resolution cap when drawing PDF pages onto the printer DC.
RASTER_DPI = int(os.environ.get('PRINT_AGENT_RASTER_DPI', '300'))
# Used when HtmlToPdfTimeoutMs is missing or not positive.
DEFAULT_RENDER_TIMEOUT_MS = 30000


def load_agent_config(path: str = None) -> AgentConfig:
    """
    Read the operator config written by the tray dialog.
    Re-read on every call so printer changes apply without a restart; never written from here.
    """
    path = path or CONFIG_PATH
    if not os.path.exists(path):
        return AgentConfig()
    try:
        with open(path, 'r', encoding='utf-8-sig') as f:
            data = json.load(f)
        return AgentConfig.model_validate(data)
    except (OSError, ValueError, ModelError) as e:
        logger.warning('config %s unreadable, using defaults: %s', path, e)
        return AgentConfig()


def render_timeout_seconds(cfg: AgentConfig) -> float:
    timeout_ms = cfg.html_to_pdf_timeout_ms
    if timeout_ms <= 0:
        timeout_ms = DEFAULT_RENDER_TIMEOUT_MS
    return timeout_ms / 1000.0

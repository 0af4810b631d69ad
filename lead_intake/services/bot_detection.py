# lead_intake/services/bot_detection.py
import logging
import re
from dataclasses import dataclass, field
from typing import Mapping

logger = logging.getLogger("intake.bot_detection")

# crawler and automation user agents
BOT_SIGNATURES = re.compile(
    r"bot|crawler|spider|crawling|slurp|headless|phantomjs|selenium|puppeteer|playwright"
    r"|python-requests|python-urllib|aiohttp|httpx|curl/|wget/|go-http-client|java/|libwww|scrapy",
    re.IGNORECASE,
)


@dataclass
class ClientInfo:
    ip: str
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "") or ""


class BotDetector:
    def is_bot(self, client: ClientInfo) -> bool:
        raise NotImplementedError


class UserAgentBotDetector(BotDetector):
    """Flags empty user agents and known crawler/automation signatures."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def is_bot(self, client: ClientInfo) -> bool:
        if not self.enabled:
            return False
        ua = client.user_agent.strip()
        if not ua or BOT_SIGNATURES.search(ua):
            logger.info("Bot signature ip=%s ua=%r", client.ip, ua[:120])
            return True
        return False

"""Affiliate redirect resolution.

A "view deal" click always ends on a link carrying our affiliate tag. Mobile
clients first try the marketplace's shopping app and fall back to the web
page if the app does not take over within a short delay; desktop clients
get the tagged page in a new tab.

The browser primitives (opening tabs, timers, page visibility) sit behind
``Navigator`` so the fallback logic can be driven by a fake clock in tests
and mirrored by the redirect page's script in production.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from deals.config import (
    AFFILIATE_ID,
    ANDROID_APP_PACKAGE,
    ANDROID_CLEANUP_DELAY,
    ANDROID_FALLBACK_DELAY,
    IOS_CLEANUP_DELAY,
    IOS_FALLBACK_DELAY,
)
from deals.logging_config import get_logger, log_deal_event
from deals.url_validation import canonical_deal_url, ensure_affiliate_tag, extract_product_id

__all__ = [
    "Platform",
    "detect_platform",
    "RedirectPlan",
    "build_redirect_plan",
    "Navigator",
    "TimerHandle",
    "CancellationToken",
    "AttemptState",
    "DeepLinkAttempt",
    "handle_view_deal",
]

logger = get_logger("redirect")

IOS_RE = re.compile(r"iPhone|iPad|iPod", re.IGNORECASE)
ANDROID_RE = re.compile(r"Android", re.IGNORECASE)


class Platform(str, Enum):
    IOS = "ios"
    ANDROID = "android"
    DESKTOP = "desktop"


def detect_platform(user_agent: Optional[str]) -> Platform:
    """Pick the redirect branch from a user-agent string."""
    user_agent = user_agent or ""
    if IOS_RE.search(user_agent):
        return Platform.IOS
    if ANDROID_RE.search(user_agent):
        return Platform.ANDROID
    return Platform.DESKTOP


@dataclass
class RedirectPlan:
    """Where a click should go.

    ``app_link`` is None for desktop. Delays are in seconds and are zero
    when there is no app attempt.
    """

    platform: Platform
    tagged_url: str
    product_id: Optional[str] = None
    app_link: Optional[str] = None
    fallback_delay: float = 0.0
    cleanup_delay: float = 0.0

    @property
    def is_mobile(self) -> bool:
        return self.platform != Platform.DESKTOP

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["platform"] = self.platform.value
        return data


def _android_intent(target: str) -> str:
    return f"intent://{target}#Intent;scheme=https;package={ANDROID_APP_PACKAGE};end"


def build_redirect_plan(
    deal_url: str,
    user_agent: Optional[str] = None,
    affiliate_id: str = AFFILIATE_ID,
) -> RedirectPlan:
    """Re-tag a deal URL and choose the platform-specific destination.

    The product ID is extracted from the tagged URL. When it cannot be found
    the app link is built from the tagged URL itself.

    Args:
        deal_url: Stored deal URL
        user_agent: Client user-agent string
        affiliate_id: Affiliate tag to apply

    Returns:
        RedirectPlan for the click
    """
    tagged_url = ensure_affiliate_tag(deal_url, affiliate_id)
    product_id = extract_product_id(tagged_url)
    platform = detect_platform(user_agent)

    if platform == Platform.IOS:
        app_link = canonical_deal_url(product_id, affiliate_id) if product_id else tagged_url
        return RedirectPlan(
            platform=platform,
            tagged_url=tagged_url,
            product_id=product_id,
            app_link=app_link,
            fallback_delay=IOS_FALLBACK_DELAY,
            cleanup_delay=IOS_CLEANUP_DELAY,
        )

    if platform == Platform.ANDROID:
        if product_id:
            target = canonical_deal_url(product_id, affiliate_id).split("://", 1)[1]
        else:
            target = re.sub(r"^https?://", "", tagged_url)
        return RedirectPlan(
            platform=platform,
            tagged_url=tagged_url,
            product_id=product_id,
            app_link=_android_intent(target),
            fallback_delay=ANDROID_FALLBACK_DELAY,
            cleanup_delay=ANDROID_CLEANUP_DELAY,
        )

    return RedirectPlan(platform=platform, tagged_url=tagged_url, product_id=product_id)


# =============================================================================
# Navigation primitives
# =============================================================================

class TimerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None:
        ...


class Navigator(ABC):
    """Browser-side operations a redirect needs."""

    @abstractmethod
    def open_new_tab(self, url: str) -> None:
        """Open ``url`` in a new tab with no opener."""

    @abstractmethod
    def navigate(self, url: str) -> None:
        """Replace the current page with ``url``."""

    @abstractmethod
    def launch_app(self, url: str) -> None:
        """Trigger an app deep link."""

    @abstractmethod
    def is_visible(self) -> bool:
        """True while the page is in the foreground."""

    @abstractmethod
    def add_visibility_listener(self, callback: Callable[[], None]) -> None:
        ...

    @abstractmethod
    def remove_visibility_listener(self, callback: Callable[[], None]) -> None:
        ...

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` after ``delay`` seconds."""


class CancellationToken:
    """Set once; shared by every callback of one attempt."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class AttemptState(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class DeepLinkAttempt:
    """One app-launch attempt with a timed fallback to the web page.

    Three things can end the attempt: the page going to the background (the
    app opened), the fallback timer firing while the page is still visible
    (navigate to the web URL), or the cleanup timer. Whichever comes first
    resolves the attempt; the others are cancelled and the visibility
    listener is detached.
    """

    def __init__(self, navigator: Navigator, plan: RedirectPlan):
        if not plan.app_link:
            raise ValueError("DeepLinkAttempt needs a plan with an app link")
        self.navigator = navigator
        self.plan = plan
        self.state = AttemptState.PENDING
        self.resolution: Optional[str] = None
        self.token = CancellationToken()
        self._fallback_timer: Optional[TimerHandle] = None
        self._cleanup_timer: Optional[TimerHandle] = None

    def start(self) -> "DeepLinkAttempt":
        self.navigator.add_visibility_listener(self._on_visibility_change)
        self._fallback_timer = self.navigator.call_later(self.plan.fallback_delay, self._on_fallback)
        self._cleanup_timer = self.navigator.call_later(self.plan.cleanup_delay, self._on_cleanup)
        try:
            self.navigator.launch_app(self.plan.app_link)
        except Exception:
            self._resolve("error")
            raise
        return self

    def _on_visibility_change(self) -> None:
        if self.token.cancelled or self.navigator.is_visible():
            return
        logger.debug("Page hidden, app probably launched")
        self._resolve("app_opened")

    def _on_fallback(self) -> None:
        if self.token.cancelled:
            return
        if not self.navigator.is_visible():
            self._resolve("app_opened")
            return
        logger.info(
            f"{self.plan.platform.value} app not launched after "
            f"{self.plan.fallback_delay}s, falling back to browser"
        )
        self._resolve("fallback")
        self.navigator.navigate(self.plan.tagged_url)

    def _on_cleanup(self) -> None:
        if self.token.cancelled:
            return
        self._resolve("cleanup")

    def _resolve(self, reason: str) -> bool:
        """Move to RESOLVED. Returns False if already resolved."""
        if self.token.cancelled:
            return False
        self.token.cancel()
        self.state = AttemptState.RESOLVED
        self.resolution = reason

        for timer in (self._fallback_timer, self._cleanup_timer):
            if timer is not None:
                timer.cancel()
        self.navigator.remove_visibility_listener(self._on_visibility_change)
        return True


def handle_view_deal(
    deal_url: str,
    navigator: Navigator,
    user_agent: Optional[str] = None,
    affiliate_id: str = AFFILIATE_ID,
) -> Optional[DeepLinkAttempt]:
    """Send a "view deal" click to the right destination.

    Desktop clients get one new tab with the tagged URL. Mobile clients get
    a started DeepLinkAttempt. Any error along the way degrades to a plain
    navigation to the tagged URL.

    Returns:
        The running attempt for mobile clients, otherwise None
    """
    tagged_url = ensure_affiliate_tag(deal_url, affiliate_id)
    try:
        plan = build_redirect_plan(deal_url, user_agent, affiliate_id)
        log_deal_event("deal_click", {
            "message": f"Deal click ({plan.platform.value})",
            "platform": plan.platform.value,
            "product_id": plan.product_id,
            "url": plan.tagged_url,
        })

        if not plan.is_mobile:
            navigator.open_new_tab(plan.tagged_url)
            return None

        return DeepLinkAttempt(navigator, plan).start()
    except Exception:
        logger.exception("Error opening deal link, navigating directly")
        navigator.navigate(tagged_url)
        return None

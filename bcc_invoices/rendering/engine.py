"""
Headless Chromium (Playwright) HTML -> PDF engine.

Each call to ``render`` launches its own browser process and closes it when
the call ends, whether it succeeds, fails or is cancelled.
"""
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

from playwright.async_api import async_playwright

from ..config import Settings
from ..errors import RenderError
from ..logging_config import get_logger

logger = get_logger("rendering.engine")

VIEWPORT = {"width": 1200, "height": 800}
PAGE_MARGINS = {"top": "10mm", "right": "10mm", "bottom": "10mm", "left": "10mm"}

# flags used for Chromium builds running in containers / serverless sandboxes
SERVERLESS_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-zygote",
    "--single-process",
    "--font-render-hinting=none",
)
LOCAL_ARGS = ("--no-sandbox", "--disable-setuid-sandbox")


class RenderEngine(Protocol):
    async def render(self, html: str) -> bytes:
        ...


@dataclass(frozen=True)
class LaunchProfile:
    name: str
    args: Tuple[str, ...]
    executable_path: Optional[str] = None
    ignore_https_errors: bool = False


def production_profile(executable_path: Optional[str]) -> LaunchProfile:
    return LaunchProfile(
        name="production",
        args=SERVERLESS_ARGS,
        executable_path=executable_path,
        ignore_https_errors=True,
    )


def development_profile() -> LaunchProfile:
    return LaunchProfile(name="development", args=LOCAL_ARGS)


def launch_profile_for(settings: Settings) -> LaunchProfile:
    if settings.is_production:
        return production_profile(settings.CHROMIUM_EXECUTABLE_PATH)
    return development_profile()


class ChromiumEngine:
    def __init__(self, profile: LaunchProfile, content_load_timeout_ms: int = 30000):
        self.profile = profile
        self.content_load_timeout_ms = content_load_timeout_ms

    async def _launch(self, playwright):
        return await playwright.chromium.launch(
            headless=True,
            args=list(self.profile.args),
            executable_path=self.profile.executable_path,
        )

    async def render(self, html: str) -> bytes:
        try:
            async with async_playwright() as playwright:
                browser = await self._launch(playwright)
                try:
                    page = await browser.new_page(
                        viewport=VIEWPORT,
                        ignore_https_errors=self.profile.ignore_https_errors,
                    )
                    await page.set_content(
                        html,
                        wait_until="networkidle",
                        timeout=self.content_load_timeout_ms,
                    )
                    return await page.pdf(
                        format="A4",
                        print_background=True,
                        margin=PAGE_MARGINS,
                    )
                finally:
                    await browser.close()
        except Exception as exc:
            logger.error("Chromium render failed (profile=%s): %s", self.profile.name, exc)
            raise RenderError(f"Erreur lors de la génération du PDF: {exc}") from exc


def build_engine(settings: Settings) -> ChromiumEngine:
    profile = launch_profile_for(settings)
    logger.info("Using %s Chromium profile", profile.name)
    return ChromiumEngine(profile, content_load_timeout_ms=settings.CONTENT_LOAD_TIMEOUT_MS)

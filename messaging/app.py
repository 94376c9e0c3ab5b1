"""Bridge application: wires the relay core and drives startup."""

import asyncio
import importlib
import sys
import traceback
from collections.abc import Callable

from loguru import logger

from config.logging_config import configure_logging, truncate_log_periodically
from config.settings import Settings, get_settings
from providers.base import RemoteClient
from providers.media import HttpMediaPipeline, MediaPipeline
from providers.rate_limit import SendRateLimiter

from .channel_map import ChannelMap
from .errors import LoginFailedError
from .login import LoginFlow, LoginResult
from .platforms.base import LocalPlatform
from .prompts import PromptService
from .registry import ConversationCache, IdentityCache
from .router import RelayRouter
from .storage import DataStore, hash_string


class StartupError(Exception):
    """Startup failed before a control channel was available."""


def load_remote_factory(path: str) -> Callable[[Settings], RemoteClient]:
    """Resolve a "module.path:callable" factory."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"REMOTE_CLIENT_FACTORY must look like 'module:callable', got {path!r}"
        )
    module = importlib.import_module(module_name)
    return getattr(module, attr)


class BridgeApp:
    """Owns the service objects and their startup/shutdown order."""

    def __init__(
        self,
        settings: Settings,
        remote: RemoteClient,
        local: LocalPlatform,
        media: MediaPipeline | None = None,
        store: DataStore | None = None,
    ):
        self.settings = settings
        self.remote = remote
        self.local = local
        self.media = media or HttpMediaPipeline(
            read_timeout=settings.http_read_timeout,
            write_timeout=settings.http_write_timeout,
            connect_timeout=settings.http_connect_timeout,
        )
        self.store = store or DataStore(settings.data_dir)
        self.channel_map = ChannelMap(self.store)
        self.users = IdentityCache(remote)
        self.conversations = ConversationCache(remote)
        self.router = RelayRouter(
            remote,
            local,
            self.channel_map,
            self.users,
            self.conversations,
            self.media,
            rate_limiter=SendRateLimiter(
                settings.remote_rate_limit, settings.remote_rate_window
            ),
            command_prefix=settings.command_prefix,
            backfill_count=settings.backfill_count,
            backfill_delay=settings.backfill_delay,
        )
        self._pump_task: asyncio.Task | None = None

    @property
    def session_key(self) -> str:
        return f"{hash_string(self.settings.remote_username)}.session"

    async def start(self) -> bool:
        """
        Bring the bridge up. Returns False if the relay could not be activated;
        the error has then been posted to the control channel.

        Raises:
            StartupError: if the control channel could not be established
        """
        try:
            await self.local.start()
            self.channel_map.load(self.local.default_channel_id())
            if not self.channel_map.control_channel_id:
                raise StartupError("No control channel: server has no system channel")
            await self.channel_map.ensure_category(
                lambda: self.local.create_category(self.settings.category_name)
            )
        except StartupError:
            raise
        except Exception as e:
            raise StartupError(f"Startup failed: {e}") from e

        self.local.on_message(self.router.handle_local_event)

        try:
            if await self._restore_session():
                await self._login()
            await self._save_session()
            await self.remote.connect_realtime()
            self.router.start()
            self._pump_task = asyncio.create_task(
                self.router.pump(self.remote.events())
            )
            await self.conversations.initialize()
            logger.info("BRIDGE: relay active")
            return True
        except Exception as e:
            logger.error(f"BRIDGE: startup failed: {e!r}")
            await self._report_startup_error(e)
            return False

    async def _restore_session(self) -> bool:
        """Import saved session state. Returns True when a login is needed."""
        state = self.store.read(self.session_key)
        if state:
            await self.remote.import_state(state)
        try:
            if await self.remote.verify_session():
                logger.info("BRIDGE: restored remote session")
                return False
        except Exception as e:
            logger.info(f"BRIDGE: saved session unusable: {e}")
        return True

    async def _login(self) -> None:
        prompts = PromptService(self.local, self.channel_map.control_channel_id)
        flow = LoginFlow(
            self.remote,
            prompts,
            self.settings.remote_username,
            self.settings.remote_password,
            code_timeout=self.settings.login_code_timeout,
            mode_select_timeout=self.settings.mode_select_timeout,
        )
        result = await flow.run()
        if result != LoginResult.OK:
            raise LoginFailedError(result)

    async def _save_session(self) -> None:
        state = await self.remote.export_state()
        await asyncio.to_thread(self.store.write, self.session_key, state)

    async def _report_startup_error(self, error: Exception) -> None:
        trace = "".join(traceback.format_exception(error))
        try:
            await self.local.send_code(self.channel_map.control_channel_id, trace)
        except Exception as e:
            logger.error(f"BRIDGE: could not report startup error: {e}")

    async def stop(self) -> None:
        if self._pump_task:
            self._pump_task.cancel()
            try:
                await self._pump_task
            except asyncio.CancelledError:
                pass
        await self.router.stop()
        try:
            await self._save_session()
        except Exception as e:
            logger.warning(f"BRIDGE: could not save session: {e}")
        await self.remote.close()
        await self.media.aclose()
        await self.local.stop()

    async def run_forever(self) -> None:
        active = await self.start()
        try:
            if active and self._pump_task:
                await self._pump_task
            else:
                logger.warning("BRIDGE: relay inactive, waiting for shutdown")
                await asyncio.Event().wait()
        finally:
            await self.stop()


async def _run(settings: Settings) -> None:
    from .platforms.discord import DiscordPlatform

    truncator = asyncio.create_task(truncate_log_periodically(settings.log_file))
    remote = load_remote_factory(settings.remote_client_factory)(settings)
    local = DiscordPlatform(settings.discord_bot_token, settings.discord_guild_id)
    app = BridgeApp(settings, remote, local)
    try:
        await app.run_forever()
    finally:
        truncator.cancel()


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_file)
    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("BRIDGE: interrupted")
    except StartupError as e:
        # No control channel to report to
        logger.error(f"BRIDGE: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"BRIDGE: stopped: {e!r}")
        sys.exit(1)

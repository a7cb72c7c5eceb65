import asyncio
import logging
import signal

from core.config import ConfigError, load_identity, load_settings
from core.engine import Engine
from core.memory_store import MemoryStore
from core.memory_tools import register_memory_tools
from core.providers import build_client
from core.replies import Notices
from core.router import MessageRouter
from core.sessions import SessionCache, SessionPersistence
from transports.discord_bot import DiscordTransport, run_discord_bot

log = logging.getLogger("yagi-discord-bot")


async def main():
    try:
        settings = load_settings()
    except ConfigError as exc:
        raise SystemExit(str(exc))
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s :: %(message)s")

    system_prompt = load_identity(settings.identity_path)
    memory = MemoryStore(settings.data_dir)
    sessions = SessionCache(SessionPersistence(settings.data_dir))

    engine = Engine(
        build_client(settings.provider, settings.api_key),
        settings.model,
        system_prompt=system_prompt,
    )
    register_memory_tools(engine, memory)

    client = DiscordTransport()
    client.router = MessageRouter(
        engine=engine,
        sessions=sessions,
        memory=memory,
        transport=client,
        system_prompt=system_prompt,
        prefix=settings.prefix,
        notices=Notices(settings.language),
    )

    stop_event = asyncio.Event()

    def _signal_handler(*_):
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    discord_task = asyncio.create_task(run_discord_bot(client, settings.token))
    sweeper_task = asyncio.create_task(sessions.run_sweeper())
    log.info("yagi-discord-bot is running with %s/%s. Press Ctrl+C to stop.", settings.provider.name, settings.model)

    stop_wait = asyncio.create_task(stop_event.wait())
    await asyncio.wait({stop_wait, discord_task}, return_when=asyncio.FIRST_COMPLETED)
    log.info("Shutting down...")

    stop_wait.cancel()
    await client.close()
    for task in (discord_task, sweeper_task):
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            log.error("task ended with error: %s", exc)
    await engine.close()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()

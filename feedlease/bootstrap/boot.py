import asyncio
import logging

from feedlease.bootstrap.config.loader import get_cli_args
from feedlease.bootstrap.deps import get_host, get_storage
from feedlease.core.helpers.utils import setup_signal_handler, setup_logging


async def serve(stop_event: asyncio.Event) -> None:
    host = get_host()
    try:
        await host.run(stop_event)
    finally:
        await get_storage().close()


def main() -> None:
    cli = get_cli_args()
    setup_logging(cli.log_level)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    try:
        with setup_signal_handler() as stop_event:
            loop.run_until_complete(serve(stop_event))
    except KeyboardInterrupt:
        logging.getLogger("bootstrap.boot").info("Interrupted, exiting.")
    finally:
        try:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.run_until_complete(loop.shutdown_default_executor())
        finally:
            loop.close()


if __name__ == "__main__":
    main()
